from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class Timeout:
    connect: Optional[float] = None
    read: Optional[float] = None
    write: Optional[float] = None

    @classmethod
    def from_value(cls, value: Union["Timeout", float, int, None]) -> "Timeout":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls()
        float_value = float(value)
        return cls(connect=float_value, read=float_value, write=float_value)
