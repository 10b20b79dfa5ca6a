from enum import Enum


class ContactType(str, Enum):
    CONTACT = "contact"
    ORGANIZATION = "organization"
    VENDOR = "vendor"
    SPONSOR = "sponsor"
    PARTNER = "partner"
