import unittest
from unittest.mock import MagicMock, patch

from blkcrypt.devices import BlkDevice
from blkcrypt.encryption_types import EncryptionType, PbkdFunction
from blkcrypt.logger import Logger
from blkcrypt.sysconfig import ConfigStore, FdeToolsConfig
from blkcrypt.tpm_fde_strategy import InstallationSession, SessionState, TpmFdeStrategy

Logger.enabled = False


class MemoryStore(ConfigStore):
    """In-memory configuration section"""

    def __init__(self, values=None):
        self.values = dict(values or {})
        self.pending = {}

    def read(self, key):
        return self.values.get(key)

    def write(self, key, value):
        self.pending[key] = value
        return True

    def commit(self):
        self.values.update(self.pending)
        self.pending.clear()
        return True


class ReadOnlyStore(MemoryStore):
    """Section that silently fails to persist anything"""

    def commit(self):
        self.pending.clear()
        return False


def mock_fde_tools():
    fde = MagicMock()
    fde.add_secondary_password.return_value = True
    fde.add_secondary_key.return_value = True
    fde.enroll_service.return_value.enable.return_value = True
    return fde


class TpmFdeTestCase(unittest.TestCase):
    def setUp(self):
        self.store = MemoryStore({"FDE_LUKS_PBKDF": "argon2id"})
        self.fde = mock_fde_tools()
        self.factory = MagicMock(return_value=self.fde)
        self.session = InstallationSession(
            target_root="/mnt", fde_config=FdeToolsConfig(self.store),
            fde_tools_factory=self.factory
        )
        self.strategy = TpmFdeStrategy(self.session)

    def encrypt(self, name, udev_id=None, password="recovery"):
        device = BlkDevice(name, udev_ids=[udev_id] if udev_id else None)
        encryption = self.strategy.create_device(device)
        encryption.password = password
        return encryption


class TestTpmFdeCreateDevice(TpmFdeTestCase):
    def test_crypttab_settings(self):
        encryption = self.strategy.create_device(
            BlkDevice("/dev/sda2"), "cr_root", label="root", crypt_options=["x-initrd.attach"]
        )

        self.assertEqual(encryption.type, EncryptionType.LUKS2)
        self.assertEqual(encryption.crypt_options, ["x-initrd.attach"])
        self.assertEqual(encryption.key_file, "/.fde-virtual.key")
        self.assertFalse(encryption.use_key_file_in_commit)
        self.assertEqual(encryption.pbkdf, PbkdFunction.ARGON2ID)
        self.assertEqual(encryption.label, "root")
        self.assertTrue(self.strategy.applies_to(encryption))

    def test_unknown_pbkdf(self):
        self.store.values["FDE_LUKS_PBKDF"] = "scrypt"

        encryption = self.strategy.create_device(BlkDevice("/dev/sda2"))

        self.assertIsNone(encryption.pbkdf)

    def test_not_available_for_selection(self):
        self.assertFalse(self.strategy.available())

    def test_possible(self):
        with patch.object(TpmFdeStrategy, 'efi_boot', return_value=True), \
                patch.object(TpmFdeStrategy, 'tpm_present', return_value=True):
            self.assertTrue(self.strategy.possible())

        with patch.object(TpmFdeStrategy, 'efi_boot', return_value=False), \
                patch.object(TpmFdeStrategy, 'tpm_present', return_value=True) as mock_tpm:
            self.assertFalse(self.strategy.possible())
            mock_tpm.assert_not_called()

    def test_session_required(self):
        with self.assertRaises(TypeError):
            TpmFdeStrategy()


class TestInstallationSession(TpmFdeTestCase):
    def test_post_commit_accumulates(self):
        encryption = self.encrypt("/dev/sda2")

        self.assertEqual(self.session.state, SessionState.IDLE)
        self.strategy.post_commit(encryption)

        self.assertEqual(self.session.devices, [encryption])
        self.assertEqual(self.session.recovery_password, "recovery")
        self.assertEqual(self.session.state, SessionState.ACCUMULATING)

    def test_ignored_outside_installation(self):
        self.session.installation = False

        self.strategy.post_commit(self.encrypt("/dev/sda2"))

        self.assertEqual(self.session.devices, [])

    def test_same_password_required(self):
        self.strategy.post_commit(self.encrypt("/dev/sda2"))

        with self.assertRaises(ValueError):
            self.strategy.post_commit(self.encrypt("/dev/sda3", password="other"))
        self.assertEqual(len(self.session.devices), 1)

    def test_finalize_without_devices(self):
        self.assertTrue(self.strategy.finish_installation())
        self.factory.assert_not_called()
        self.assertIsNone(self.store.read("FDE_DEVS"))

    def test_finalize(self):
        self.strategy.post_commit(self.encrypt("/dev/sdb1"))
        self.strategy.post_commit(self.encrypt("/dev/sda2", udev_id="/dev/disk/by-id/ata-disk-part2"))

        self.assertTrue(self.strategy.finish_installation())

        self.assertEqual(self.store.read("FDE_DEVS"), "/dev/disk/by-id/ata-disk-part2 /dev/sdb1")
        self.factory.assert_called_once_with("recovery", "/mnt")
        self.fde.add_secondary_password.assert_called_once_with()
        self.fde.add_secondary_key.assert_called_once_with()
        self.fde.enroll_service.return_value.enable.assert_called_once_with()
        self.assertEqual(self.session.devices, [])
        self.assertIsNone(self.session.recovery_password)
        self.assertEqual(self.session.state, SessionState.IDLE)

    def test_finalize_runs_once(self):
        self.strategy.post_commit(self.encrypt("/dev/sda2"))

        self.assertTrue(self.session.finalize())
        self.assertTrue(self.session.finalize())

        self.factory.assert_called_once()
        self.assertEqual(self.fde.add_secondary_password.call_count, 1)
        self.assertEqual(self.fde.add_secondary_key.call_count, 1)

    def test_finalize_stops_when_config_not_written(self):
        self.session = InstallationSession(
            fde_config=FdeToolsConfig(ReadOnlyStore()), fde_tools_factory=self.factory
        )
        self.strategy = TpmFdeStrategy(self.session)
        encryption = self.encrypt("/dev/sda2")
        self.strategy.post_commit(encryption)

        self.assertFalse(self.session.finalize())

        self.factory.assert_not_called()
        self.assertEqual(self.session.devices, [encryption])

    def test_finalize_stops_at_first_failed_step(self):
        self.fde.add_secondary_password.return_value = False
        encryption = self.encrypt("/dev/sda2")
        self.strategy.post_commit(encryption)

        self.assertFalse(self.session.finalize())

        self.fde.add_secondary_key.assert_not_called()
        self.fde.enroll_service.return_value.enable.assert_not_called()
        self.assertEqual(self.session.devices, [encryption])

        self.fde.add_secondary_password.return_value = True
        self.assertTrue(self.session.finalize())
        self.assertEqual(self.session.devices, [])

    def test_shared_session(self):
        """Devices from different strategy instances end up in one finalize()"""
        other = TpmFdeStrategy(self.session)
        self.strategy.post_commit(self.encrypt("/dev/sda2"))
        encryption = other.create_device(BlkDevice("/dev/sdb1"))
        encryption.password = "recovery"
        other.post_commit(encryption)

        self.assertTrue(other.finish_installation())

        self.assertEqual(self.store.read("FDE_DEVS"), "/dev/sda2 /dev/sdb1")
        self.factory.assert_called_once()


if __name__ == '__main__':
    unittest.main()
