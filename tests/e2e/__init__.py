"""
End-to-end tests for the shipwright CLI.

These tests drive complete workflows against a manifests repository on disk.

All tests in this directory are marked with @pytest.mark.e2e and run
complete CLI commands through the Click test runner.
"""
