"""
Discord-style Gateway Client
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

An asyncio client for Discord-style chat platforms.

:copyright: (c) 2024-present MCausc78
:license: MIT, see LICENSE for more details.

"""

from . import (
    routes as routes,
    utils as utils,
)

from .base import *
from .cache import *
from .channel import *
from .client import *
from .core import *
from .dispatcher import *
from .emoji import *
from .enums import *
from .errors import *
from .events import *
from .flags import *
from .handlers import *
from .http import *
from .message import *
from .packets import *
from .parser import *
from .permissions import *
from .server import *
from .shard import *
from .state import *
from .user import *
from .utils import *

import typing

if typing.TYPE_CHECKING:
    from . import raw as raw

del typing
