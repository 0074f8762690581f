# plan_config/module_catalog.py
"""
Module catalog and seed plans.
Edit the bundles here to change what a fresh install offers; existing plans
are managed through the platform admin API.
"""

from entitlements import ModuleType

MODULE_CATALOG = {
    ModuleType.USERS: {
        'type': ModuleType.USERS,
        'name': 'Users',
        'description': 'Users and permissions inside the organization',
        'has_limits': True,
        'default_limit': 5,
    },
    ModuleType.CONTACTS: {
        'type': ModuleType.CONTACTS,
        'name': 'Contacts',
        'description': 'Companies and business contacts',
        'has_limits': True,
        'default_limit': 100,
    },
    ModuleType.CRM: {
        'type': ModuleType.CRM,
        'name': 'CRM',
        'description': 'Opportunities, activities and pipeline reports',
        'has_limits': False,
        'default_limit': None,
    },
}

DEFAULT_PLANS = {
    'starter': {
        'name': 'Starter',
        'description': 'For small teams getting organized',
        'monthly_price': '0.00',
        'annual_price': '0.00',
        'is_default': True,
        'display_order': 1,
        'modules': {
            ModuleType.USERS: {'is_included': True, 'item_limit': 2,
                               'can_create': True, 'can_edit': True, 'can_delete': False},
            ModuleType.CONTACTS: {'is_included': True, 'item_limit': 100,
                                  'can_create': True, 'can_edit': True, 'can_delete': True},
            ModuleType.CRM: {'is_included': False, 'item_limit': None,
                             'can_create': False, 'can_edit': False, 'can_delete': False},
        },
    },
    'professional': {
        'name': 'Professional',
        'description': 'Full CRM for growing sales teams',
        'monthly_price': '29.00',
        'annual_price': '290.00',
        'is_default': False,
        'display_order': 2,
        'modules': {
            ModuleType.USERS: {'is_included': True, 'item_limit': 10,
                               'can_create': True, 'can_edit': True, 'can_delete': True},
            ModuleType.CONTACTS: {'is_included': True, 'item_limit': 1000,
                                  'can_create': True, 'can_edit': True, 'can_delete': True},
            ModuleType.CRM: {'is_included': True, 'item_limit': None,
                             'can_create': True, 'can_edit': True, 'can_delete': True},
        },
    },
    'enterprise': {
        'name': 'Enterprise',
        'description': 'No limits',
        'monthly_price': '99.00',
        'annual_price': '990.00',
        'is_default': False,
        'display_order': 3,
        'modules': {
            ModuleType.USERS: {'is_included': True, 'item_limit': None,
                               'can_create': True, 'can_edit': True, 'can_delete': True},
            ModuleType.CONTACTS: {'is_included': True, 'item_limit': None,
                                  'can_create': True, 'can_edit': True, 'can_delete': True},
            ModuleType.CRM: {'is_included': True, 'item_limit': None,
                             'can_create': True, 'can_edit': True, 'can_delete': True},
        },
    },
}


def get_module_definition(module_type: str) -> dict:
    """Get the catalog entry for a module, or None for unknown types."""
    return MODULE_CATALOG.get(module_type)


def default_limit_for(module_type: str):
    """Catalog default item limit, None when the module is unbounded."""
    definition = MODULE_CATALOG.get(module_type)
    if not definition or not definition['has_limits']:
        return None
    return definition['default_limit']


def get_plan_defaults(key: str) -> dict:
    """Get a seed bundle by key, falling back to the starter plan."""
    return DEFAULT_PLANS.get(key, DEFAULT_PLANS['starter'])


def apply_plan_defaults(plan, key: str):
    """
    Apply a seed bundle to a plan.

    Args:
        plan: Plan model instance
        key: Bundle key ('starter', 'professional', 'enterprise')
    """
    from models import PlanModule

    defaults = get_plan_defaults(key)
    plan.name = defaults['name']
    plan.description = defaults['description']
    plan.monthly_price = defaults['monthly_price']
    plan.annual_price = defaults['annual_price']
    plan.is_default = defaults['is_default']
    plan.display_order = defaults['display_order']

    for module_type, settings in defaults['modules'].items():
        plan_module = plan.get_module(module_type)
        if plan_module is None:
            plan_module = PlanModule(module_type=module_type)
            plan.modules.append(plan_module)
        plan_module.is_included = settings['is_included']
        plan_module.item_limit = settings['item_limit']
        plan_module.can_create = settings['can_create']
        plan_module.can_edit = settings['can_edit']
        plan_module.can_delete = settings['can_delete']
