class MemCacherError(Exception):
    pass


class InvalidOption(MemCacherError, TypeError):
    """An option value that cannot be used, reported at wrap time."""

    def __init__(self, option: str, message: str):
        self.option = option
        super().__init__(f"option {option} {message}")


class ConflictingOptions(MemCacherError, ValueError):
    def __init__(self, *options: str):
        self.options = options
        super().__init__(
            f"cannot use option {' and option '.join(options)} at the same time"
        )


class InvalidArgument(MemCacherError, TypeError):
    """A call argument that has no canonical cache key."""
