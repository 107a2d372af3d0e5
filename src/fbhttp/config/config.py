import os
import platform

from configobj import ConfigObj, ConfigObjError, Section
from validate import Validator

# The default extension for configuration files
config_extension = '.cfg'


def config_flavor(name, flavor=None):
    """
    >>> config_flavor('fbhttp')
    'fbhttp'
    >>> config_flavor('fbhttp', 'linux')
    'fbhttp.linux'
    """
    return name if not flavor else name + '.' + flavor


def config_filename(name, directory):
    return os.path.join(directory, name + config_extension)


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, flavor=None) -> ConfigObj:
    """
    Loads a specialization of a config file, named after the base followed by a period and the
    flavor. A missing file yields an empty configuration.
    """
    file = config_filename(config_flavor(name, flavor), directory)
    return load_config_file_base(file, False)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def user_config_file(name):
    return os.path.expanduser('~/' + name + config_extension)


def load_config(name, directory):
    """
    Loads all the configuration files that relate to the given name, in increasing precedence:
    - the default specialization (name.default.cfg)
    - the platform specialization (name.linux.cfg, name.osx.cfg, ...)
    - the user override (~/name.cfg)
    - the local configuration (name.cfg)
    The result is validated against name.schema.cfg, which must exist. The schema supplies
    defaults for missing values and converts the values to their declared types.
    :raises ConfigObjError: when the merged configuration fails validation
    """
    schema = config_filename(config_flavor(name, 'schema'), directory)
    config = ConfigObj(configspec=schema)
    config.merge(config_flavor_file(name, directory, 'default'))
    config.merge(config_flavor_file(name, directory, os_name()))
    config.merge(load_config_file_base(user_config_file(name), must_exist=False))
    config.merge(config_flavor_file(name, directory))

    result = config.validate(Validator())
    if result is not True:
        raise ConfigObjError("the config file %s failed validation %s" % (name, result))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:    The root configuration
    :param path:    An iterable that lists the names of the sections to resolve
    :return: The configuration section identified by the path, or None.
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return
    return conf


def apply_conf(conf: Section, target):
    """
    Sets each configured value as the attribute of the same name on target. Values with no
    matching attribute are ignored.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)


def apply_conf_path(conf: Section, name_parts, target):
    conf = fetch_conf_path(conf, name_parts)
    if conf:
        apply_conf(conf, target)


def apply(target, config_path, config_name, directory):
    """
    Applies values defined under a dotted section path to a target object.
    :param target: The object to receive the values defined
    :param config_path: The section path holding the values, split on '.'
    :param config_name: The configuration name to load.
    :param directory: the directory containing the config files
    """
    conf = load_config(config_name, directory)
    apply_conf_path(conf, config_path.split('.'), target)


def reconstruct_name(path, package_depth):
    """
    Retrieves a dotted module name from a module path.
    :param path The filename of a module file
    :param package_depth The number of levels deep from the root.

    >>> reconstruct_name('/srv/lib/fbhttp/http/layer.py', 2)
    'fbhttp.http.layer'
    >>> reconstruct_name('C:\\\\lib\\\\settings.py', 0)
    'settings'
    """
    path = path.replace('\\', '/')
    parts = path.split('/')
    parts[-1] = os.path.splitext(parts[-1])[0]
    return '.'.join(parts[-package_depth - 1:])


def fq_module_name(module):
    """
    Retrieves the fully qualified name of the module, reconstructed from the file when the
    module runs as __main__.
    """
    if not module.__package__:
        raise ConfigObjError('module has no package defined')
    return module.__name__ if module.__name__ != '__main__' else \
        reconstruct_name(module.__file__, len(module.__package__.split('.')))


def configure_module(module, config_name=None):
    """
    Applies the configuration to the given module's globals.
    The values are read from the section path matching the module's qualified name
    (e.g. [fbhttp] [[settings]]) in the config files located beside the module source.
    """
    fqname = fq_module_name(module)
    if not config_name:
        config_name = fqname.split('.')[-1]
    apply(module, fqname, config_name, os.path.dirname(module.__file__))
