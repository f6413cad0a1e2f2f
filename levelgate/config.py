"""YAML configuration.

Configuration is a tree of groups. Code asks for the values it needs:

    group = conf.root.add_group("permissions")
    backend = group.register("backend", default="yaml")
    backend()  # -> "yaml"

Registering writes missing values back into the document: defaults are filled
in and marked with a "Default value" comment, and required values (no default)
are left empty with a "Required value" comment. Saving the file afterwards
leaves the operator with a template to fill in.

    - FileConfiguration : a config tied to a filename
    - StringConfiguration : a config tied to a string
    - ConfigGroup : a mapping in the tree, holding entries and groups
    - ConfigEntry : callable handle to one value
"""
import io
import ruamel.yaml


class InvalidConfig(Exception):
    pass


class ConfigEntry:
    """Handle to a single config value."""

    def __init__(self, config, default=None, validator=None, path=None,
                 required=True):
        self._config = config
        self._path = path
        self.default = default
        self.validator = validator
        self.required = required

    @property
    def name(self):
        return self._path[-1]

    @property
    def value(self):
        return self._config.get(self._path)

    def validate(self):
        """Run the validator, raising InvalidConfig if it rejects the value."""
        if self.validator is None or self.value is None:
            return
        try:
            ok = self.validator(self.value)
        except (TypeError, ValueError) as e:
            raise InvalidConfig("%s: %s" % (".".join(self._path), e)) from e
        if ok is False:
            raise InvalidConfig("%s: invalid value %r" % (
                ".".join(self._path), self.value))

    def __call__(self):
        return self.value


class ConfigGroup:
    def __init__(self, config, path=None):
        self._config = config
        self._path = path or []
        self._entries = {}

    def register(self, value_name, default=None, validator=None, required=True):
        """Register config entry.

        Raises if loaded configuration is invalid. With required=False a
        missing value is allowed and reads as None.
        """
        entry = ConfigEntry(
            self._config, default, validator, path=self._path + [value_name],
            required=required)
        self._entries[value_name] = entry
        if not self.validate():
            raise InvalidConfig("%s is required" % ".".join(entry._path))
        entry.validate()
        return entry

    def add_group(self, group_name):
        group = ConfigGroup(self._config, self._path + [group_name])
        self._entries[group_name] = group
        self.validate()
        return group

    def remove_group(self, group_name):
        del self._entries[group_name]
        self.validate()

    def validate(self):
        """Return False if a required value is missing.

        If entry is not present, the default value is set.
        If we changed configuration data, comment set where we changed it.
        """
        data = self._config.get(self._path)
        valid = True

        for key, entry in self._entries.items():
            if key not in data or data[key] is None:
                if isinstance(entry, ConfigGroup):
                    data[key] = self._config._yaml.map()
                elif entry.default is not None:
                    data[key] = entry.default
                    data.yaml_add_eol_comment("Default value", key)
                elif not entry.required:
                    data[key] = None
                    data.yaml_add_eol_comment("Optional value", key)
                else:
                    data[key] = None
                    data.yaml_add_eol_comment("Required value", key)
                    valid = False
        return valid


class Configuration:
    def __init__(self):
        self._yaml = ruamel.yaml.YAML()
        self.root = ConfigGroup(self)

    def get(self, path):
        cur = self._data
        while path:
            cur = cur[path[0]]
            path = path[1:]
        return cur

    def _pruned(self):
        data = self._data.copy()
        for key, val in self._data.items():
            if isinstance(val, dict) and not val:
                del data[key]
        return data

    def dumps(self):
        buff = io.StringIO()
        self._yaml.dump(self._pruned(), buff)
        buff.seek(0)
        return buff.read()


class StringConfiguration(Configuration):
    def __init__(self, string):
        super().__init__()
        self._data = self._yaml.load(string) or self._yaml.map()


class FileConfiguration(Configuration):
    def __init__(self, filename):
        super().__init__()
        self._filename = filename

    def load(self):
        try:
            with open(self._filename, encoding="utf8") as f:
                self._data = self._yaml.load(f.read()) or self._yaml.map()
        except FileNotFoundError:
            self._data = self._yaml.map()

    def save(self):
        with open(self._filename, 'w', encoding="utf8") as f:
            self._yaml.dump(self._pruned(), f)
