from .channels import *
from .emojis import *
from .gateway import *
from .messages import *
from .servers import *
from .users import *
