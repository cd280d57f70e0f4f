from .accounts import AccountBase, AdminAccount, BusinessAccount, CustomerAccount, StaffAccount

__all__ = [
    "AccountBase",
    "AdminAccount",
    "BusinessAccount",
    "CustomerAccount",
    "StaffAccount",
]
