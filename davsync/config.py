import json
import logging
import os

"""
Reading connection settings from a config file.

The file is JSON (or YAML, if pyyaml is installed) with one object per
section::

    {
        "default": {"davsync_url": "https://cloud.example.com",
                    "davsync_username": "alice",
                    "davsync_password": "secret"},
        "work": {"inherits": "default", "davsync_username": "alice.work"}
    }
"""

log = logging.getLogger("davsync")

## keys accepted in a section, mapped to DAVSyncClient parameters
SECTION_KEYS = {
    "url": "url",
    "user": "username",
    "username": "username",
    "pass": "password",
    "password": "password",
    "timeout": "timeout",
    "ssl_verify_cert": "ssl_verify_cert",
}


def default_config_files():
    cfgdir = f"{os.environ.get('HOME', '/')}/.config"
    return (
        f"{cfgdir}/davsync/davsync.conf",
        f"{cfgdir}/davsync/davsync.yaml",
        f"{cfgdir}/davsync/davsync.json",
        "/etc/davsync/davsync.conf",
    )


def config_section(config, section="default"):
    """
    The settings of ``section``, merged on top of the section it
    ``inherits`` from (recursively).
    """
    seen = set()
    chain = []
    while section in config and section not in seen:
        seen.add(section)
        chain.append(config[section])
        section = config[section].get("inherits")
    ret = {}
    for part in reversed(chain):
        ret.update(part)
    ret.pop("inherits", None)
    return ret


def connection_params(section):
    """
    DAVSyncClient keyword arguments from a config section.  Keys may be
    given with or without a ``davsync_`` prefix.
    """
    params = {}
    for key, value in section.items():
        if key.startswith("davsync_"):
            key = key[8:]
        if key in SECTION_KEYS and value not in (None, ""):
            params[SECTION_KEYS[key]] = value
    return params


def read_config(fn=None):
    """
    Load a config file.  Without a file name the default locations are
    tried in turn.

    Returns:
        The parsed config, or an empty dict if there is no usable file
    """
    if not fn:
        for config_file in default_config_files():
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return {}

    try:
        with open(fn, "rb") as config_file:
            raw = config_file.read()
    except FileNotFoundError:
        log.debug("no config file at %s", fn)
        return {}

    try:
        cfg = json.loads(raw)
    except json.decoder.JSONDecodeError:
        ## Late import, yaml is an optional extra
        try:
            import yaml
        except ImportError:
            log.error(
                "config file %s is not valid json, and pyyaml is not installed", fn
            )
            return {}
        try:
            cfg = yaml.safe_load(raw)
        except yaml.YAMLError:
            log.error("config file %s is neither valid json nor yaml, it will be ignored", fn)
            return {}
    if not isinstance(cfg, dict):
        log.error("config file %s does not hold a mapping of sections", fn)
        return {}
    return cfg
