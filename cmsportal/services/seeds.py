"""Built-in defaults written the first time each state key is read"""
from functools import partial
from typing import Dict

from cmsportal.services.accounts import bootstrap_admin_accounts
from cmsportal.services.content import default_authors, default_posts
from cmsportal.services.documents import default_customers
from cmsportal.services.state_store import SeedFactory, StateKey


def default_seeds(settings) -> Dict[StateKey, SeedFactory]:
    return {
        StateKey.ADMIN_USERS: partial(bootstrap_admin_accounts, settings),
        StateKey.AUTHORS: default_authors,
        StateKey.POSTS: default_posts,
        StateKey.CUSTOMERS: default_customers,
    }
