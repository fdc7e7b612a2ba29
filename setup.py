from setuptools import setup, find_namespace_packages

from leasecfg import VERSION

setup(
    name="leasecfg",
    description="Applies DHCP leases to network interfaces and system services",
    python_requires=">=3.11",
    packages=find_namespace_packages(include=["leasecfg", "leasecfg.*"]),
    install_requires=[
        "paho-mqtt>=2.0",
        "protobuf>=4.22",
        "pyroute2",
        "systemd-python",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "leasecfg = leasecfg.programs.leasecfg_agent:main",
            "leasecfg-dhclient-event = leasecfg.programs.leasecfg_dhclient_event:main",
        ],
    },
    version=VERSION,
)
