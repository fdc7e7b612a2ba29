"""
leasecfg/interface/hwaddr.py - Link layer hardware addresses
"""

import binascii


# Longest link layer address DHCP can carry (chaddr is 16 bytes, but
# infiniband client identifiers go up to 20)
MAX_HWADDR_LEN = 20


class HardwareAddress:
    """
    A link layer address of any length, e.g. EUI-48 for ethernet or the
    20 byte infiniband address.
    """

    def __init__(self, address: str | bytes):
        self.data: bytes

        try:
            if isinstance(address, str):
                data = binascii.unhexlify(address.replace(":", "").replace("-", ""))
            elif isinstance(address, (bytes, bytearray)):
                data = bytes(address)
            else:
                raise ValueError

            if 0 < len(data) <= MAX_HWADDR_LEN:
                self.data = data
            else:
                raise ValueError
        except (ValueError, binascii.Error):
            raise ValueError(f"'{address}' does not appear to be a hardware address")

    def __str__(self) -> str:
        return ":".join("%02x" % octet for octet in self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __eq__(self, other):
        return self.data == other.data


def hwaddr_to_string(data: bytes) -> str:
    "Colon separated lower case hex. Empty input gives an empty string."
    if not data:
        return ""
    return str(HardwareAddress(data))
