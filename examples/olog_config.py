"""Log directory configuration - Python example

Copy to your project root as olog_config.py when hooks are needed.

Convention:
- CONFIG dict for static configuration (same structure as TOML)
- Functions named hook_* become hooks
"""

import logging

# =============================================================================
# Static Configuration (same structure as TOML)
# =============================================================================

CONFIG = {
    "service": {
        "name": "olog-ops",
    },
    "storage": {
        "data_dir": "data",
        "database": "olog.db",
        "lock_timeout": 5,
    },
    "merge": {
        # "skip": an existing logbook/tag of the same name wins on update
        # "overwrite": the incoming one replaces it
        "same_name": "skip",
    },
    "authorization": {
        # Leave out "groups" to read membership from the OS account database
        "admin_groups": ["olog-admins"],
        "tag_owner_group": "olog-taggers",
    },
}


# =============================================================================
# Hooks - Called by the directory manager
# =============================================================================

def hook_pre_create_entry(entry):
    """Called before a new entry is stored. Return the entry to store."""
    if entry.subject:
        entry.subject = entry.subject.strip()
    return entry


def hook_post_write(operation, target):
    """Called after every successful mutation."""
    logging.getLogger("olog_config").info("%s %s", operation, target)
