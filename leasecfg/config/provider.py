"""
leasecfg/config/provider.py - Configuration provider
"""

from google.protobuf import text_format
import logging

from leasecfg.exceptions import InvalidConfig
from leasecfg.info import INFO_DIRECTORY, infofile_path
from leasecfg.lease import Options
from leasecfg.reconciler import DEFAULT_SCRIPT
from leasecfg.schema import Config, InterfaceConfig
from leasecfg.service import Provider


logger = logging.getLogger("config")


CONFIG_FILE = "/etc/leasecfg/leasecfg.conf"


class ConfigProvider(Provider):
    """
    Policy for each interface, read from a protobuf text format file.

    Settings in an ``interface`` block override ``defaults`` one field at a
    time. A missing file leaves everything at its default.
    """
    def __init__(self, location=CONFIG_FILE):
        super().__init__()
        self.location = location
        self.data = Config()
        self.load()

    def load(self):
        data = Config()
        try:
            with open(self.location) as f:
                text_format.Merge(f.read(), data)
        except FileNotFoundError:
            logger.info(f"{self.location} not found, using defaults")
        except OSError as e:
            raise InvalidConfig(f"Could not read {self.location}: {e.strerror}")
        except text_format.ParseError as e:
            raise InvalidConfig(f"Could not parse {self.location}: {e}")
        self.data = data

    def find_interface_config(self, ifname):
        for interface_config in self.data.interface:
            if interface_config.name == ifname:
                return interface_config
        return None

    def get_interface_config(self, ifname):
        config = InterfaceConfig()
        config.MergeFrom(self.data.defaults)
        interface_config = self.find_interface_config(ifname)
        if interface_config is not None:
            config.MergeFrom(interface_config)
        config.name = ifname
        return config

    def get_options(self, ifname) -> Options:
        config = self.get_interface_config(ifname)
        return Options(
            gateway=config.gateway,
            mtu=config.mtu,
            dns=config.dns,
            ntp=config.ntp,
            nis=config.nis,
            hostname=config.hostname,
            metric=config.metric,
            script=config.script or DEFAULT_SCRIPT,
            class_id=config.class_id,
            client_id=config.client_id,
        )

    def get_infofile(self, ifname) -> str:
        return infofile_path(ifname, self.data.info_directory or INFO_DIRECTORY)

    @property
    def mqtt(self):
        return self.data.mqtt
