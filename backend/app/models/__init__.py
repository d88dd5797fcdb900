from .clinic import Clinic
from .owner import Owner
from .pet import Pet
from .visit import Visit
from .user import User
from .revoked_token import RevokedToken
