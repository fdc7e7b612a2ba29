"""
leasecfg/schema.py - Protobuf messages for configuration and lease events

The message types are described here with descriptor protos and built into
classes at import time, so no protoc step is needed. Configuration is stored
in protobuf text format and lease events travel over MQTT serialized.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory


PACKAGE = "leasecfg.v1"

Field = descriptor_pb2.FieldDescriptorProto

STRING = Field.TYPE_STRING
BOOL = Field.TYPE_BOOL
UINT32 = Field.TYPE_UINT32
MESSAGE = Field.TYPE_MESSAGE


def add_message(file_proto, name, fields):
    """
    Add a message type. fields is a list of (name, type, options) tuples
    numbered from 1. options may hold ``repeated``, ``message`` (type name)
    and ``default``.
    """
    message = file_proto.message_type.add()
    message.name = name
    for number, (field_name, field_type, options) in enumerate(fields, 1):
        field = message.field.add()
        field.name = field_name
        field.number = number
        field.type = field_type
        if options.get("repeated"):
            field.label = Field.LABEL_REPEATED
        else:
            field.label = Field.LABEL_OPTIONAL
        if field_type == MESSAGE:
            field.type_name = f".{PACKAGE}.{options['message']}"
        if "default" in options:
            field.default_value = options["default"]
    return message


def build_file():
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = "leasecfg/v1/leasecfg.proto"
    file_proto.package = PACKAGE
    file_proto.syntax = "proto2"

    add_message(file_proto, "InterfaceConfig", [
        ("name", STRING, {}),
        ("gateway", BOOL, {"default": "true"}),
        ("mtu", BOOL, {"default": "true"}),
        ("dns", BOOL, {"default": "true"}),
        ("ntp", BOOL, {"default": "true"}),
        ("nis", BOOL, {"default": "true"}),
        ("hostname", BOOL, {"default": "false"}),
        ("metric", UINT32, {}),
        ("script", STRING, {}),
        ("class_id", STRING, {}),
        ("client_id", STRING, {}),
    ])
    add_message(file_proto, "MQTTConfig", [
        ("host", STRING, {"default": "localhost"}),
        ("port", UINT32, {"default": "1883"}),
        ("prefix", STRING, {"default": "leasecfg"}),
    ])
    add_message(file_proto, "Config", [
        ("defaults", MESSAGE, {"message": "InterfaceConfig"}),
        ("interface", MESSAGE, {"message": "InterfaceConfig", "repeated": True}),
        ("mqtt", MESSAGE, {"message": "MQTTConfig"}),
        ("info_directory", STRING, {}),
    ])

    add_message(file_proto, "Route", [
        ("destination", STRING, {}),
        ("netmask", STRING, {}),
        ("gateway", STRING, {}),
    ])
    add_message(file_proto, "FQDN", [
        ("flags", UINT32, {}),
        ("rcode1", UINT32, {}),
        ("rcode2", UINT32, {}),
        ("name", STRING, {}),
    ])
    add_message(file_proto, "Lease", [
        ("address", STRING, {}),
        ("netmask", STRING, {}),
        ("broadcast", STRING, {}),
        ("mtu", UINT32, {}),
        ("route", MESSAGE, {"message": "Route", "repeated": True}),
        ("dns_server", STRING, {"repeated": True}),
        ("dns_domain", STRING, {}),
        ("dns_search", STRING, {}),
        ("ntp_server", STRING, {"repeated": True}),
        ("nis_domain", STRING, {}),
        ("nis_server", STRING, {"repeated": True}),
        ("hostname", STRING, {}),
        ("fqdn", MESSAGE, {"message": "FQDN"}),
        ("root_path", STRING, {}),
        ("server_identifier", STRING, {}),
        ("server_name", STRING, {}),
        ("lease_time", UINT32, {}),
        ("renewal_time", UINT32, {}),
        ("rebind_time", UINT32, {}),
    ])
    add_message(file_proto, "LeaseEvent", [
        ("interface", STRING, {}),
        ("reason", STRING, {}),
        ("lease", MESSAGE, {"message": "Lease"}),
    ])
    return file_proto


pool = descriptor_pool.DescriptorPool()
pool.AddSerializedFile(build_file().SerializeToString())


def get_message_class(name):
    return message_factory.GetMessageClass(pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


InterfaceConfig = get_message_class("InterfaceConfig")
MQTTConfig = get_message_class("MQTTConfig")
Config = get_message_class("Config")
RouteMessage = get_message_class("Route")
FQDNMessage = get_message_class("FQDN")
LeaseMessage = get_message_class("Lease")
LeaseEvent = get_message_class("LeaseEvent")
