from __future__ import annotations


class SetupError(ValueError):
    pass


class HostError(RuntimeError):
    pass


class ThreadingError(HostError):
    pass


class EditError(HostError):
    pass


class FontReadError(HostError):
    pass
