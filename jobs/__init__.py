# jobs package
from .usage_recalculator import update_all_account_usage, update_single_account_usage

__all__ = [
    'update_all_account_usage',
    'update_single_account_usage',
]
