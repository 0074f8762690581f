# plan_config package
from .module_catalog import (
    MODULE_CATALOG, DEFAULT_PLANS, get_module_definition, default_limit_for,
    get_plan_defaults, apply_plan_defaults
)

__all__ = [
    'MODULE_CATALOG', 'DEFAULT_PLANS', 'get_module_definition', 'default_limit_for',
    'get_plan_defaults', 'apply_plan_defaults'
]
