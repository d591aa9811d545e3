import unittest
from unittest.mock import patch

from blkcrypt.config import SYSTEMD_CRYPTENROLL
from blkcrypt.devices import BlkDevice
from blkcrypt.encryption_types import Authentication, EncryptionType, PbkdFunction
from blkcrypt.execute import CommandResult
from blkcrypt.logger import Logger
from blkcrypt.luks_strategy import Luks1Strategy, Luks2Strategy, SystemdFdeStrategy

Logger.enabled = False


class TestLuksStrategies(unittest.TestCase):
    def test_luks1(self):
        strategy = Luks1Strategy()

        encryption = strategy.create_device(BlkDevice("/dev/sda1"))

        self.assertEqual(encryption.type, EncryptionType.LUKS1)
        self.assertEqual(encryption.dm_table_name, "cr_sda1")
        self.assertTrue(encryption.auto_dm_name)
        self.assertTrue(strategy.applies_to(encryption))
        self.assertFalse(Luks2Strategy().applies_to(encryption))

    def test_luks2_label_and_pbkdf(self):
        strategy = Luks2Strategy()

        encryption = strategy.create_device(
            BlkDevice("/dev/sda1"), "cr_root", label="root", pbkdf=PbkdFunction.ARGON2ID
        )

        self.assertEqual(encryption.type, EncryptionType.LUKS2)
        self.assertEqual(encryption.label, "root")
        self.assertEqual(encryption.pbkdf, PbkdFunction.ARGON2ID)
        self.assertFalse(encryption.auto_dm_name)
        self.assertTrue(strategy.applies_to(encryption))
        self.assertFalse(SystemdFdeStrategy().applies_to(encryption))

    def test_encrypting_an_encryption_device(self):
        encryption = Luks2Strategy().create_device(BlkDevice("/dev/sda1"))

        with self.assertRaises(TypeError):
            Luks2Strategy().create_device(encryption)

    def test_encrypting_twice(self):
        device = BlkDevice("/dev/sda1")
        Luks2Strategy().create_device(device)

        with self.assertRaises(ValueError):
            Luks1Strategy().create_device(device)

    def test_commit_hooks_delegate_to_strategy(self):
        strategy = Luks2Strategy()
        encryption = strategy.create_device(BlkDevice("/dev/sda1"))

        with patch.object(strategy, 'pre_commit') as mock_pre, \
                patch.object(strategy, 'post_commit') as mock_post:
            encryption.pre_commit()
            encryption.post_commit()

        mock_pre.assert_called_once_with(encryption)
        mock_post.assert_called_once_with(encryption)
        self.assertTrue(strategy.finish_installation())


class TestSystemdFdeStrategy(unittest.TestCase):
    def test_tpm2_crypt_option(self):
        strategy = SystemdFdeStrategy()

        encryption = strategy.create_device(
            BlkDevice("/dev/sda2"), authentication=Authentication.TPM2,
            crypt_options=["tpm2-device=auto", "discard"]
        )

        self.assertEqual(encryption.authentication, Authentication.TPM2)
        self.assertEqual(encryption.crypt_options, ["tpm2-device=auto", "discard"])
        self.assertTrue(strategy.applies_to(encryption))
        self.assertFalse(Luks2Strategy().applies_to(encryption))

    def test_fido2_crypt_option(self):
        encryption = SystemdFdeStrategy().create_device(
            BlkDevice("/dev/sda2"), authentication=Authentication.FIDO2
        )
        self.assertEqual(encryption.crypt_options, ["fido2-device=auto"])

    @patch('blkcrypt.execute.run')
    def test_enroll_tpm2_with_pin(self, mock_run):
        mock_run.return_value = CommandResult(0, "", "")
        strategy = SystemdFdeStrategy()
        encryption = strategy.create_device(
            BlkDevice("/dev/sda2"), authentication=Authentication.TPM2_PIN
        )
        encryption.password = "s3cr3t"

        strategy.post_commit(encryption)

        mock_run.assert_called_once_with(
            SYSTEMD_CRYPTENROLL, "--tpm2-device=auto", "--tpm2-with-pin=yes", "/dev/sda2",
            env={"PASSWORD": "s3cr3t"}
        )

    @patch('blkcrypt.execute.run')
    def test_password_only_enrolls_nothing(self, mock_run):
        strategy = SystemdFdeStrategy()
        encryption = strategy.create_device(BlkDevice("/dev/sda2"))

        strategy.post_commit(encryption)

        mock_run.assert_not_called()
        self.assertEqual(encryption.crypt_options, [])

    @patch('blkcrypt.execute.run')
    def test_enroll_failure_is_not_fatal(self, mock_run):
        mock_run.return_value = CommandResult(1, "", "no TPM")
        strategy = SystemdFdeStrategy()
        encryption = strategy.create_device(
            BlkDevice("/dev/sda2"), authentication=Authentication.FIDO2
        )

        strategy.post_commit(encryption)

        mock_run.assert_called_once()


if __name__ == '__main__':
    unittest.main()
