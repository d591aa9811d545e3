import unittest

from blkcrypt.devices import BlkDevice
from blkcrypt.encryption_types import EncryptionType
from blkcrypt.volume import VolumeAssociation


class TestVolumeAssociation(unittest.TestCase):
    def setUp(self):
        self.device = BlkDevice(
            "/dev/dasdc1",
            udev_ids=["/dev/disk/by-id/ccw-0X0150-part1"],
            udev_paths=["/dev/disk/by-path/ccw-0.0.0150-part1"]
        )

    def test_string_round_trip(self):
        for text in ("/dev/dasdc1:cr_7", "/dev/dasdc1"):
            self.assertEqual(str(VolumeAssociation.from_string(text)), text)

        entry = VolumeAssociation("/dev/sda1", "cr_sda1")
        self.assertEqual(VolumeAssociation.from_string(str(entry)), entry)

    def test_parse(self):
        self.assertEqual(
            VolumeAssociation.from_string(" /dev/dasdc1:cr_7 "),
            VolumeAssociation("/dev/dasdc1", "cr_7")
        )
        self.assertEqual(
            VolumeAssociation.from_string("/dev/dasdc1"),
            VolumeAssociation("/dev/dasdc1", None)
        )

    def test_parse_name_with_colons(self):
        """The DeviceMapper name is whatever follows the last colon"""
        entry = VolumeAssociation.from_string("/dev/disk/by-path/pci-0000:00:1f.2-part1:cr_root")

        self.assertEqual(entry.plain_name, "/dev/disk/by-path/pci-0000:00:1f.2-part1")
        self.assertEqual(entry.dm_name, "cr_root")

    def test_matches_plain_device_by_any_name(self):
        for name in self.device.aliases:
            self.assertTrue(VolumeAssociation(name, "cr_7").matches(self.device))
        self.assertFalse(VolumeAssociation("/dev/dasdd1", "cr_7").matches(self.device))

    def test_from_encryption_matches_both_devices(self):
        encryption = self.device.encrypt(EncryptionType.LUKS2, "cr_7")

        entry = VolumeAssociation.from_encryption(encryption)

        self.assertEqual(str(entry), "/dev/disk/by-id/ccw-0X0150-part1:cr_7")
        self.assertTrue(entry.matches(encryption))
        self.assertTrue(entry.matches(self.device))

    def test_matches_encryption_by_dm_name(self):
        encryption = self.device.encrypt(EncryptionType.LUKS2, "cr_7")

        self.assertTrue(VolumeAssociation("/dev/dasdz9", "cr_7").matches(encryption))
        self.assertFalse(VolumeAssociation("/dev/dasdz9", "cr_8").matches(encryption))
        self.assertFalse(VolumeAssociation("/dev/dasdz9").matches(encryption))


class TestBlkDevice(unittest.TestCase):
    def test_preferred_name(self):
        self.assertEqual(BlkDevice("/dev/sda1").preferred_name, "/dev/sda1")
        self.assertEqual(
            BlkDevice("/dev/sda1", udev_paths=["/dev/disk/by-path/p1"]).preferred_name,
            "/dev/disk/by-path/p1"
        )
        self.assertEqual(
            BlkDevice("/dev/sda1", udev_ids=["/dev/disk/by-id/i1"],
                      udev_paths=["/dev/disk/by-path/p1"]).preferred_name,
            "/dev/disk/by-id/i1"
        )

    def test_aliases_without_duplicates(self):
        device = BlkDevice("/dev/sda1", udev_ids=["/dev/sda1", "/dev/disk/by-id/i1"])
        self.assertEqual(device.aliases, ["/dev/sda1", "/dev/disk/by-id/i1"])

    def test_encrypt_twice(self):
        device = BlkDevice("/dev/sda1")
        encryption = device.encrypt(EncryptionType.LUKS2, "cr_sda1")

        self.assertIs(encryption.plain_device, device)
        self.assertEqual(encryption.name, "/dev/mapper/cr_sda1")
        with self.assertRaises(ValueError):
            device.encrypt(EncryptionType.LUKS1, "cr_other")


if __name__ == '__main__':
    unittest.main()
