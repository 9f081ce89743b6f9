"""API schemas package."""

from .common import *
from .ai import *
from .auth import *
from .posts import *
from .subscription import *
