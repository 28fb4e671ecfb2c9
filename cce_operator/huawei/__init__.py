"""Huawei Cloud service clients.

Each client wraps one service endpoint and returns TypedDicts from the API.
For the controller, import the driver bundle:

    from cce_operator.huawei.driver import Driver, DriverCache
"""

from .common import ClientAuth
from .errors import HuaweiError, is_not_found

__all__ = ["ClientAuth", "HuaweiError", "is_not_found"]
