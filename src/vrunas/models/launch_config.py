"""Launch configuration model for vrunas."""

from pydantic import BaseModel, Field


class LaunchConfig(BaseModel):
    """Everything the launch pipeline needs to know, built from the command line."""

    has_uid: bool = False
    has_gid: bool = False
    optional_args: bool = False
    stderr_to_stdout: bool = False
    stdout_to_stderr: bool = False
    append: bool = False
    posix_timing: bool = False
    extended_timing: bool = False
    multiple_redirects: bool = False
    new_id_files: bool = False
    has_priority: bool = False
    debug: bool = False

    uid: int = 0
    gid: int = 0
    priority: int = 0
    output_path: str | None = None
    input_path: str | None = None

    argv: list[str] = Field(default_factory=list)
    child_argv_start: int = 0

    @property
    def timing(self) -> bool:
        return self.posix_timing or self.extended_timing

    @property
    def merges_streams(self) -> bool:
        return self.stderr_to_stdout or self.stdout_to_stderr

    @property
    def has_program(self) -> bool:
        return 0 < self.child_argv_start < len(self.argv)

    @property
    def child_argv(self) -> list[str]:
        if not self.has_program:
            return []
        return self.argv[self.child_argv_start :]
