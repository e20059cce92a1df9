import gzip
from urllib.parse import urlsplit

import pytest
import requests
from requests.structures import CaseInsensitiveDict

R = "/redfish/v1"
SYSTEM = R + "/Systems/System.Embedded.1"
CHASSIS = R + "/Chassis/System.Embedded.1"
MANAGER = R + "/Managers/iDRAC.Embedded.1"


CATALOG_XML = b"""<?xml version="1.0" encoding="utf-8"?>
<Manifest baseLocation="downloads.dell.com" version="24.01.00">
  <SoftwareComponent packageID="ABC12" releaseDate="January 10, 2024" vendorVersion="2.19.1"
                     path="FOLDER01/1/BIOS_ABC12_WN64_2.19.1.EXE" size="33554432">
    <Name><Display lang="en">Dell Server BIOS PowerEdge R640 Version 2.19.1</Display></Name>
    <ComponentType value="BIOS"><Display lang="en">BIOS</Display></ComponentType>
    <Criticality value="Recommended"><Display lang="en">Recommended</Display></Criticality>
    <SupportedSystems>
      <Brand key="3" prefix="PE">
        <Model systemID="0716">PowerEdge R640</Model>
        <Model systemID="0715">PowerEdge R740</Model>
      </Brand>
    </SupportedSystems>
  </SoftwareComponent>
  <SoftwareComponent packageID="OLD01" vendorVersion="2.18.1" path="FOLDER00/BIOS_OLD01.EXE">
    <ComponentType value="BIOS"/>
    <Criticality value="Optional"/>
    <SupportedSystems><Brand><Model>PowerEdge R640</Model></Brand></SupportedSystems>
  </SoftwareComponent>
  <SoftwareComponent packageID="XYZ99" vendorVersion="7.00.30.00" path="FOLDER02/iDRAC.EXE">
    <ComponentType value="FRMW"/>
    <Criticality value="Critical"/>
    <SupportedSystems><Brand><Model>PowerEdge R640</Model></Brand></SupportedSystems>
  </SoftwareComponent>
</Manifest>
"""


def corrupted_gzip(data):
    """Valid gzip header, mangled deflate stream."""
    out = bytearray(gzip.compress(data))
    for i in range(10, 40):
        out[i] ^= 0xFF
    return bytes(out)


class FakeResponse:
    def __init__(self, status_code=200, body=None, headers=None, content=b""):
        self.status_code = status_code
        self._body = body
        self.headers = CaseInsensitiveDict(headers or {})
        self.content = content

    def json(self):
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body


class FakeRedfish:
    """
    Stand-in for requests.Session serving Redfish resources keyed by URL path.
    Paths not in resources answer 404, statuses overrides the code per path.
    """

    def __init__(self, resources=None, login_status=201, statuses=None):
        self.resources = dict(resources or {})
        self.login_status = login_status
        self.statuses = dict(statuses or {})
        self.headers = {}
        self.auth = None
        self.logins = 0
        self.gets = []
        self.deletes = []
        self.unreachable = False

    def post(self, url, headers=None, data=None, timeout=None, verify=None):
        if self.unreachable:
            raise requests.ConnectionError("connection refused")
        self.logins += 1
        if self.login_status in (200, 201):
            return FakeResponse(self.login_status, {}, {
                "X-Auth-Token": "token-1",
                "Location": R + "/SessionService/Sessions/1",
            })
        return FakeResponse(self.login_status, {})

    def get(self, url, timeout=None, verify=None):
        path = urlsplit(url).path
        self.gets.append(path)
        if path in self.statuses:
            return FakeResponse(self.statuses[path], {})
        if path not in self.resources:
            return FakeResponse(404, {})
        return FakeResponse(200, self.resources[path])

    def delete(self, url, timeout=None, verify=None):
        self.deletes.append(urlsplit(url).path)
        return FakeResponse(204)

    def close(self):
        pass


def ref(path):
    return {"@odata.id": path}


def collection(*paths):
    return {"Members": [ref(p) for p in paths]}


def r640_resources():
    """A PowerEdge R640 that only knows the legacy Thermal/Power resources."""
    return {
        R + "/Systems": collection(SYSTEM),
        SYSTEM: {
            "Id": "System.Embedded.1",
            "Model": "PowerEdge R640",
            "Manufacturer": "Dell Inc.",
            "SKU": "7XK2Q93",
            "SerialNumber": "CNIVC0099F0123",
            "PowerState": "On",
            "Status": {"Health": "OK"},
            "Processors": ref(SYSTEM + "/Processors"),
            "Memory": ref(SYSTEM + "/Memory"),
            "EthernetInterfaces": ref(SYSTEM + "/EthernetInterfaces"),
        },
        SYSTEM + "/Processors": collection(SYSTEM + "/Processors/CPU.Socket.1"),
        SYSTEM + "/Processors/CPU.Socket.1": {"Id": "CPU.Socket.1", "Status": {"Health": "OK"}},
        SYSTEM + "/Memory": {"Members": [
            {"@odata.id": SYSTEM + "/Memory/DIMM.A1", "Status": {"Health": "OK"}},
            {"@odata.id": SYSTEM + "/Memory/DIMM.A2", "Status": {"Health": "Warning"}},
        ]},
        R + "/UpdateService/FirmwareInventory": collection(
            R + "/UpdateService/FirmwareInventory/Current-159-2.18.1",
            R + "/UpdateService/FirmwareInventory/Installed-25227-6.10.30.00",
        ),
        R + "/UpdateService/FirmwareInventory/Current-159-2.18.1": {
            "Id": "Current-159-2.18.1__BIOS.Setup.1-1",
            "Name": "BIOS",
            "Version": "2.18.1",
            "Updateable": True,
        },
        R + "/UpdateService/FirmwareInventory/Installed-25227-6.10.30.00": {
            "Id": "Installed-25227-6.10.30.00__iDRAC.Embedded.1-1",
            "Name": "iDRAC",
            "Version": "6.10.30.00",
            "Updateable": True,
        },
        R + "/Chassis": collection(R + "/Chassis/Enclosure.Internal.0-1", CHASSIS),
        R + "/Chassis/Enclosure.Internal.0-1": {"Id": "Enclosure.Internal.0-1", "ChassisType": "Enclosure"},
        CHASSIS: {
            "Id": "System.Embedded.1",
            "ChassisType": "RackMount",
            "Thermal": ref(CHASSIS + "/Thermal"),
            "Power": ref(CHASSIS + "/Power"),
        },
        CHASSIS + "/Thermal": {
            "Temperatures": [
                {"Name": "System Board Inlet Temp", "ReadingCelsius": 22, "Status": {"Health": "OK"}},
                {"Name": "CPU1 Temp", "ReadingCelsius": 58, "Status": {"Health": "OK"}},
            ],
            "Fans": [
                {"Name": "System Board Fan1A", "Reading": 5880, "Status": {"Health": "OK"}},
                {"Name": "System Board Fan2A", "Reading": 0, "Status": {"Health": "Critical"}},
            ],
        },
        CHASSIS + "/Power": {
            "PowerSupplies": [
                {"Name": "PS1 Status", "PowerCapacityWatts": 750, "Status": {"Health": "OK"}},
                {"Name": "PS2 Status", "PowerCapacityWatts": 750, "Status": {"Health": "OK"}},
            ],
            "PowerControl": [{"PowerConsumedWatts": 312}],
        },
        R + "/Managers": collection(MANAGER),
        MANAGER: {"Id": "iDRAC.Embedded.1", "LogServices": ref(MANAGER + "/LogServices")},
        MANAGER + "/LogServices": collection(MANAGER + "/LogServices/Lclog", MANAGER + "/LogServices/Sel"),
        MANAGER + "/LogServices/Lclog": {"Id": "Lclog", "Entries": ref(MANAGER + "/LogServices/Lclog/Entries")},
        MANAGER + "/LogServices/Lclog/Entries": {"Members": [
            {"@odata.id": "lc-1", "Id": "lc-1", "Created": "2024-01-15T09:00:00Z", "Severity": "OK", "Message": "lifecycle"},
        ]},
        MANAGER + "/LogServices/Sel": {"Id": "Sel", "Entries": ref(MANAGER + "/LogServices/Sel/Entries")},
        MANAGER + "/LogServices/Sel/Entries": {"Members": [
            {"@odata.id": "sel-1", "Id": "1", "Created": "2024-01-15T10:30:00-06:00",
             "Severity": "Critical", "Message": "The power supply PS2 is not receiving input power."},
            {"@odata.id": "sel-2", "Id": "2", "Created": "2024-01-16T08:00:00Z",
             "Severity": "Warning", "Message": "Fan 2A RPM is below the lower warning threshold."},
            {"@odata.id": "sel-3", "Id": "3", "Created": "not-a-date",
             "Severity": "Informational", "Message": "Log cleared."},
        ]},
    }


def modern_chassis_resources():
    """Chassis links for controllers with ThermalSubsystem/PowerSubsystem."""
    return {
        R + "/Chassis": collection(CHASSIS),
        CHASSIS: {
            "Id": "System.Embedded.1",
            "ChassisType": "RackMount",
            "ThermalSubsystem": ref(CHASSIS + "/ThermalSubsystem"),
            "PowerSubsystem": ref(CHASSIS + "/PowerSubsystem"),
            "EnvironmentMetrics": ref(CHASSIS + "/EnvironmentMetrics"),
        },
        CHASSIS + "/ThermalSubsystem": {
            "ThermalMetrics": ref(CHASSIS + "/ThermalSubsystem/ThermalMetrics"),
            "Fans": ref(CHASSIS + "/ThermalSubsystem/Fans"),
        },
        CHASSIS + "/ThermalSubsystem/ThermalMetrics": {
            "TemperatureReadingsCelsius": [
                {"DeviceName": "Inlet", "Reading": 24.5},
                {"DeviceName": "CPU 1", "Reading": 61},
            ],
        },
        CHASSIS + "/ThermalSubsystem/Fans": collection(CHASSIS + "/ThermalSubsystem/Fans/Fan.1"),
        CHASSIS + "/ThermalSubsystem/Fans/Fan.1": {
            "Name": "Fan 1", "SpeedPercent": {"Reading": 42}, "Status": {"Health": "OK"},
        },
        CHASSIS + "/PowerSubsystem": {"PowerSupplies": ref(CHASSIS + "/PowerSubsystem/PowerSupplies")},
        CHASSIS + "/PowerSubsystem/PowerSupplies": collection(CHASSIS + "/PowerSubsystem/PowerSupplies/PSU.1"),
        CHASSIS + "/PowerSubsystem/PowerSupplies/PSU.1": {
            "Name": "PSU 1", "PowerCapacityWatts": 1100, "Status": {"Health": "OK"},
        },
        CHASSIS + "/EnvironmentMetrics": {"PowerWatts": {"Reading": 405.7}},
    }


@pytest.fixture
def r640():
    return FakeRedfish(r640_resources())
