"""Unit tests for vrunas.redirect.

Descriptor tests work on temporary files standing in for fds 0/1/2, so the
test runner's own standard streams are never touched.
"""

import os
from unittest.mock import MagicMock, patch

import pytest

from vrunas import redirect
from vrunas.errors import ErrorKind, LaunchError
from vrunas.models import LaunchConfig, LaunchResources
from vrunas.redirect import (
    RedirectMode,
    _swap,
    apply_redirection,
    bind_input,
    bind_output,
    choose_redirect,
)


@pytest.fixture
def slots(tmp_path, monkeypatch):
    """Open three scratch files and use them as stdin/stdout/stderr slots."""
    paths = {name: tmp_path / f"{name}.slot" for name in ("stdin", "stdout", "stderr")}
    paths["stdin"].write_text("")
    fds = {
        "stdin": os.open(paths["stdin"], os.O_RDONLY),
        "stdout": os.open(paths["stdout"], os.O_WRONLY | os.O_CREAT),
        "stderr": os.open(paths["stderr"], os.O_WRONLY | os.O_CREAT),
    }
    monkeypatch.setattr(redirect, "STDIN_FD", fds["stdin"])
    monkeypatch.setattr(redirect, "STDOUT_FD", fds["stdout"])
    monkeypatch.setattr(redirect, "STDERR_FD", fds["stderr"])
    yield fds, paths
    for fd in fds.values():
        os.close(fd)


# ---------------------------------------------------------------------------
# choose_redirect()
# ---------------------------------------------------------------------------


class TestChooseRedirect:
    @pytest.mark.parametrize(
        ("flags", "expected"),
        [
            ({}, RedirectMode.NONE),
            ({"stderr_to_stdout": True}, RedirectMode.STDERR_TO_STDOUT),
            ({"stdout_to_stderr": True}, RedirectMode.STDOUT_TO_STDERR),
            ({"posix_timing": True}, RedirectMode.STDERR_TO_STDOUT),
            ({"extended_timing": True}, RedirectMode.STDERR_TO_STDOUT),
            ({"stdout_to_stderr": True, "posix_timing": True}, RedirectMode.STDOUT_TO_STDERR),
            ({"stderr_to_stdout": True, "extended_timing": True}, RedirectMode.STDERR_TO_STDOUT),
        ],
    )
    def test_decision_table(self, flags, expected):
        assert choose_redirect(LaunchConfig(**flags)) is expected


# ---------------------------------------------------------------------------
# apply_redirection()
# ---------------------------------------------------------------------------


class TestApplyRedirection:
    @patch("vrunas.redirect._swap")
    def test_no_redirect_creates_no_alternate_stream(self, mock_swap):
        assert apply_redirection(LaunchConfig()) is None
        mock_swap.assert_not_called()

    @patch("vrunas.redirect._swap")
    def test_stdout_to_stderr_keeps_original_stdout(self, mock_swap):
        alternate = apply_redirection(LaunchConfig(stdout_to_stderr=True))

        assert alternate is mock_swap.return_value
        mock_swap.assert_called_once_with(keep_fd=1, source_fd=2, target_fd=1)

    @patch("vrunas.redirect._swap")
    def test_stderr_to_stdout_keeps_original_stderr(self, mock_swap):
        apply_redirection(LaunchConfig(stderr_to_stdout=True))

        mock_swap.assert_called_once_with(keep_fd=2, source_fd=1, target_fd=2)

    @patch("vrunas.redirect._swap")
    def test_timing_implies_stderr_to_stdout(self, mock_swap):
        config = LaunchConfig(posix_timing=True)

        apply_redirection(config)

        mock_swap.assert_called_once_with(keep_fd=2, source_fd=1, target_fd=2)
        assert config.stderr_to_stdout is True


# ---------------------------------------------------------------------------
# _swap() on real descriptors
# ---------------------------------------------------------------------------


class TestSwap:
    def test_alternate_keeps_old_target_and_slot_follows_source(self, slots):
        fds, paths = slots

        alternate = _swap(keep_fd=fds["stderr"], source_fd=fds["stdout"], target_fd=fds["stderr"])
        try:
            alternate.write("report\n")
            alternate.flush()
            os.write(fds["stderr"], b"child error\n")
            os.write(fds["stdout"], b"child output\n")
        finally:
            alternate.close()

        assert paths["stderr"].read_text() == "report\n"
        assert paths["stdout"].read_text() == "child error\nchild output\n"

    def test_alternate_descriptor_is_not_inherited(self, slots):
        fds, _ = slots

        alternate = _swap(keep_fd=fds["stdout"], source_fd=fds["stderr"], target_fd=fds["stdout"])
        try:
            assert os.get_inheritable(alternate.fileno()) is False
        finally:
            alternate.close()

    @patch("vrunas.redirect.os.dup", side_effect=OSError(24, "Too many open files"))
    def test_dup_failure_raises_redirect_error(self, _dup):
        with pytest.raises(LaunchError) as exc_info:
            _swap(keep_fd=2, source_fd=1, target_fd=2)

        assert exc_info.value.kind is ErrorKind.REDIRECT
        assert "Too many open files" in exc_info.value.message

    def test_dup2_failure_closes_alternate(self, slots):
        fds, _ = slots
        with patch("vrunas.redirect.os.dup2", side_effect=OSError(9, "Bad file descriptor")):
            with pytest.raises(LaunchError) as exc_info:
                _swap(keep_fd=fds["stderr"], source_fd=fds["stdout"], target_fd=fds["stderr"])

        assert exc_info.value.kind is ErrorKind.REDIRECT


# ---------------------------------------------------------------------------
# bind_output() / bind_input()
# ---------------------------------------------------------------------------


class TestBindOutput:
    def test_no_output_path_is_a_noop(self):
        resources = LaunchResources()

        bind_output(LaunchConfig(), resources)

        assert resources.output_fd is None

    def test_output_replaces_stdout_and_truncates(self, slots, tmp_path):
        fds, paths = slots
        target = tmp_path / "out.txt"
        target.write_text("old content that is long\n")
        resources = LaunchResources()

        bind_output(LaunchConfig(output_path=str(target)), resources)
        os.write(fds["stdout"], b"new\n")
        os.write(fds["stderr"], b"err\n")
        resources.close()

        assert target.read_text() == "new\n"
        assert paths["stderr"].read_text() == "err\n"

    def test_append_keeps_existing_content(self, slots, tmp_path):
        fds, _ = slots
        target = tmp_path / "out.txt"
        target.write_text("first\n")
        resources = LaunchResources()

        bind_output(LaunchConfig(output_path=str(target), append=True), resources)
        os.write(fds["stdout"], b"second\n")
        resources.close()

        assert target.read_text() == "first\nsecond\n"

    @pytest.mark.parametrize("merge", ["stderr_to_stdout", "stdout_to_stderr"])
    def test_merge_flag_sends_both_streams_to_file(self, slots, tmp_path, merge):
        fds, paths = slots
        target = tmp_path / "out.txt"
        resources = LaunchResources()

        bind_output(LaunchConfig(output_path=str(target), **{merge: True}), resources)
        os.write(fds["stdout"], b"out\n")
        os.write(fds["stderr"], b"err\n")
        resources.close()

        assert target.read_text() == "out\nerr\n"
        assert paths["stderr"].read_text() == ""

    def test_open_failure_raises_setout(self, tmp_path):
        config = LaunchConfig(output_path=str(tmp_path / "missing-dir" / "out.txt"))

        with pytest.raises(LaunchError) as exc_info:
            bind_output(config, LaunchResources())

        assert exc_info.value.kind is ErrorKind.SETOUT
        assert "missing-dir" in exc_info.value.message


class TestBindInput:
    def test_input_replaces_stdin(self, slots, tmp_path):
        fds, _ = slots
        source = tmp_path / "in.txt"
        source.write_text("hello\n")
        resources = LaunchResources()

        bind_input(LaunchConfig(input_path=str(source)), resources)
        data = os.read(fds["stdin"], 100)
        resources.close()

        assert data == b"hello\n"

    def test_missing_input_raises_setin(self, tmp_path):
        config = LaunchConfig(input_path=str(tmp_path / "absent.txt"))

        with pytest.raises(LaunchError) as exc_info:
            bind_input(config, LaunchResources())

        assert exc_info.value.kind is ErrorKind.SETIN


class TestLaunchResources:
    def test_close_releases_each_resource_once(self):
        stream = MagicMock()
        resources = LaunchResources(alternate_stream=stream, output_fd=11, input_fd=12)

        with patch("vrunas.models.launch_resources.os.close") as mock_close:
            resources.close()
            resources.close()

        assert [c.args[0] for c in mock_close.call_args_list] == [11, 12]
        stream.close.assert_called_once_with()
        assert resources.alternate_stream is None
