from __future__ import annotations


class EcuMapError(Exception):
    """Base class for every error raised by the ecumap core."""


class ImageBoundsError(EcuMapError, ValueError):
    def __init__(self, message: str, *, offset: int, length: int, image_size: int) -> None:
        super().__init__(message)
        self.offset = offset
        self.length = length
        self.image_size = image_size


class OffsetOutOfBoundsError(ImageBoundsError):
    """The region starts at or past the end of the image."""


class TruncatedError(ImageBoundsError):
    """The region starts inside the image but runs past its end."""


class CellOutOfBoundsError(EcuMapError, IndexError):
    pass


class ShapeMismatchError(EcuMapError, ValueError):
    pass


class RangeViolationError(EcuMapError, ValueError):
    pass


class MultiplierOutOfRangeError(EcuMapError, ValueError):
    pass


class EncodeRangeError(EcuMapError, ValueError):
    def __init__(self, message: str, *, raw: int | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class ImageIOError(EcuMapError, OSError):
    pass


class UnknownTableError(EcuMapError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


def check_region(offset: int, length: int, image_size: int, *, what: str = "region") -> None:
    """Raise the matching bounds error unless ``[offset, offset+length)`` fits."""

    if offset < 0 or offset >= image_size:
        raise OffsetOutOfBoundsError(
            f"{what} offset 0x{offset:04X} is outside the image (size 0x{image_size:04X})",
            offset=offset,
            length=length,
            image_size=image_size,
        )
    if offset + length > image_size:
        raise TruncatedError(
            f"{what} at 0x{offset:04X} needs {length} bytes but only "
            f"{image_size - offset} remain",
            offset=offset,
            length=length,
            image_size=image_size,
        )
