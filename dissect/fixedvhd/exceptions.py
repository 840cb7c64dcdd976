class Error(Exception):
    pass


class NotFoundError(Error):
    pass


class AlreadyExistsError(Error):
    pass


class SizeOutOfRangeError(Error):
    pass


class MalformedFooterError(Error):
    pass


class ChecksumMismatchError(Error):
    pass


class OutOfBoundsError(Error):
    pass


class InvalidVirtualDisk(Error):
    pass


class DiskIOError(Error):
    pass


class ShortReadError(DiskIOError):
    pass


class ShortWriteError(DiskIOError):
    pass
