"""
Tests for the domain models: parsing of initClient / refreshClient bodies
and the immutability of the session pair.
"""

from __future__ import annotations

import dataclasses
import unittest

from device_locator.errors import DecodeError
from device_locator.models import ServerContext, SessionResponse

from .test_common import make_device_json, make_response_json


class TestServerContext(unittest.TestCase):

    def test_default_has_no_session(self):
        self.assertFalse(ServerContext().has_session)
        self.assertEqual(ServerContext().prs_id, 0)

    def test_positive_id_has_session(self):
        self.assertTrue(ServerContext(42, "token").has_session)

    def test_pair_is_frozen(self):
        context = ServerContext(42, "token")
        with self.assertRaises(dataclasses.FrozenInstanceError):
            context.prs_id = 43

    def test_token_not_in_repr(self):
        self.assertNotIn("s3cret", repr(ServerContext(1, "s3cret")))


class TestSessionResponseFromJson(unittest.TestCase):

    def test_parses_server_context(self):
        response = SessionResponse.from_json(make_response_json(prs_id=7, auth_token="abc"))
        self.assertEqual(response.context, ServerContext(7, "abc"))

    def test_parses_devices_in_order(self):
        raw = make_response_json(devices=[
            make_device_json(name="one", display_name="iPhone-12"),
            make_device_json(name="two", display_name="iPad"),
        ])
        response = SessionResponse.from_json(raw)
        self.assertEqual([d.name for d in response.devices], ["one", "two"])
        self.assertEqual(response.devices[0].display_name, "iPhone-12")

    def test_parses_location_fields(self):
        device = SessionResponse.from_json(make_response_json()).devices[0]
        self.assertEqual(device.latitude, 50.087)
        self.assertEqual(device.longitude, 14.421)
        self.assertEqual(device.altitude, 201.5)
        self.assertEqual(device.horizontal_accuracy, 65.0)
        self.assertEqual(device.vertical_accuracy, 10.0)
        self.assertEqual(device.battery_level, 0.75)
        self.assertEqual(device.battery_status, "NotCharging")
        self.assertTrue(device.has_location)

    def test_prs_id_as_string_is_accepted(self):
        raw = make_response_json()
        raw["serverContext"]["prsId"] = "1001"
        self.assertEqual(SessionResponse.from_json(raw).context.prs_id, 1001)

    def test_device_without_location(self):
        raw = make_response_json(devices=[make_device_json(location=None)])
        device = SessionResponse.from_json(raw).devices[0]
        self.assertFalse(device.has_location)
        self.assertIsNone(device.latitude)

    def test_missing_content_means_no_devices(self):
        raw = make_response_json()
        del raw["content"]
        self.assertEqual(SessionResponse.from_json(raw).devices, ())

    def test_missing_server_context_raises(self):
        with self.assertRaises(DecodeError):
            SessionResponse.from_json({"content": []})

    def test_malformed_prs_id_raises(self):
        raw = make_response_json()
        raw["serverContext"]["prsId"] = "not-a-number"
        with self.assertRaises(DecodeError):
            SessionResponse.from_json(raw)

    def test_missing_auth_token_raises(self):
        raw = make_response_json()
        del raw["serverContext"]["authToken"]
        with self.assertRaises(DecodeError):
            SessionResponse.from_json(raw)

    def test_content_not_a_list_raises(self):
        raw = make_response_json()
        raw["content"] = {"oops": True}
        with self.assertRaises(DecodeError):
            SessionResponse.from_json(raw)

    def test_non_dict_body_raises(self):
        with self.assertRaises(DecodeError):
            SessionResponse.from_json(["not", "a", "dict"])

    def test_location_missing_latitude_means_no_location(self):
        raw = make_response_json(devices=[make_device_json(location={"longitude": 1.0})])
        device = SessionResponse.from_json(raw).devices[0]
        self.assertFalse(device.has_location)

    def test_location_with_null_coordinates_keeps_device(self):
        located = make_device_json(name="Alice's iPad", display_name="iPad")
        unlocated = make_device_json(location={"latitude": None, "longitude": None, "altitude": 3.0})
        response = SessionResponse.from_json(make_response_json(devices=[located, unlocated]))
        self.assertEqual(len(response.devices), 2)
        self.assertTrue(response.devices[0].has_location)
        self.assertFalse(response.devices[1].has_location)
        self.assertIsNone(response.devices[1].altitude)

    def test_null_auth_token_raises(self):
        raw = make_response_json()
        raw["serverContext"]["authToken"] = None
        with self.assertRaises(DecodeError):
            SessionResponse.from_json(raw)

    def test_empty_auth_token_raises(self):
        with self.assertRaises(DecodeError):
            SessionResponse.from_json(make_response_json(auth_token=""))

    def test_non_string_auth_token_raises(self):
        with self.assertRaises(DecodeError):
            SessionResponse.from_json(make_response_json(auth_token=12345))

    def test_boolean_prs_id_raises(self):
        with self.assertRaises(DecodeError):
            SessionResponse.from_json(make_response_json(prs_id=True))

    def test_fractional_prs_id_raises(self):
        with self.assertRaises(DecodeError):
            SessionResponse.from_json(make_response_json(prs_id=1.5))

    def test_integral_float_prs_id_is_accepted(self):
        self.assertEqual(SessionResponse.from_json(make_response_json(prs_id=1001.0)).context.prs_id, 1001)
