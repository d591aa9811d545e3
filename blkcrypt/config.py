"""
blkcrypt Configuration Constants

Locations of the external tools, sysfs entries and configuration files
used by the encryption strategies.
"""

# External Commands
# Adapter listing for IBM Crypto Express coprocessors (s390-tools)
LSZCRYPT = "/sbin/lszcrypt"

# Secure key management (s390-tools)
ZKEY = "/usr/bin/zkey"
ZKEY_CRYPTSETUP = "zkey-cryptsetup"

# Recovery-enrollment tool from fde-tools
FDECTL = "/usr/sbin/fdectl"

SYSTEMCTL = "/usr/bin/systemctl"
SYSTEMD_CRYPTENROLL = "/usr/bin/systemd-cryptenroll"
CHROOT = "/usr/sbin/chroot"

# Crypto Express Adapters
# Master key verification patterns, one file per card.domain
# e.g. /sys/bus/ap/devices/card01/01.0001/mkvps
MKVPS_FILE_TEMPLATE = "/sys/bus/ap/devices/card{card}/{card}.{domain}/mkvps"

# Secure Key Repository
# Default location, can be overridden with the ZKEY_REPOSITORY variable
ZKEY_REPOSITORY_DIR = "/etc/zkey/repository"
ZKEY_REPOSITORY_ENV = "ZKEY_REPOSITORY"

# Pervasive LUKS2
# zkey generate parameters
SECURE_KEY_BITS = 256
SECURE_KEY_SECTOR_SIZE = 4096
SECURE_KEY_NAME_PREFIX = "secure_"

# cryptsetup luksFormat parameters for paes
PERVASIVE_CIPHER = "paes-xts-plain64"
PERVASIVE_KEY_SIZE = 1024
PERVASIVE_PBKDF = "pbkdf2"

# Swap Encryption
RANDOM_SWAP_KEY_FILE = "/dev/urandom"
PROTECTED_SWAP_KEY_FILE = "/sys/devices/virtual/misc/pkey/protkey/protkey_aes_256_xts"
SECURE_SWAP_KEY_FILE = "/sys/devices/virtual/misc/pkey/ccadata/ccadata_aes_256_xts"

# TPM Full Disk Encryption (fde-tools)
# Third column of crypttab for every device handled by fde-tools
FDE_KEY_FILE = "/.fde-virtual.key"

# Fourth column of crypttab for every device handled by fde-tools
FDE_CRYPT_OPTIONS = ["x-initrd.attach"]

# Service enrolling the TPM on first boot
FDE_ENROLL_SERVICE = "fde-tpm-enroll.service"

# Configuration file read by fdectl, relative to the system root
FDE_SYSCONFIG_FILE = "etc/sysconfig/fde-tools"
FDE_DEVS_KEY = "FDE_DEVS"
FDE_PBKDF_KEY = "FDE_LUKS_PBKDF"

# Presence of this directory means the system booted via EFI
EFI_FIRMWARE_DIR = "/sys/firmware/efi"

# Installation
# Where the target system is mounted during installation
DEFAULT_TARGET_ROOT = "/mnt"

# Prefix of the DeviceMapper names proposed by default
DM_NAME_PREFIX = "cr_"
