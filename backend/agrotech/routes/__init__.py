from importlib import import_module

modules = [
    'system',
    'auth',
    'access_links',
    'invites',
    'users',
    'soil_analysis',
    'logins',
    'audit',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
