from enum import Enum


class UserRole(str, Enum):
    user = "user"
    guide = "guide"
    lead_guide = "lead-guide"
    admin = "admin"
