"""Tests for OS identification from release files."""

import pytest

from imagescan.analyzer.os_release import identify_os, parse_key_values
from imagescan.errors import OSDetectionError


def _os(files):
    found = identify_os(files)
    return found.family, found.name


class TestParseKeyValues:
    def test_quotes_and_comments(self):
        values = parse_key_values('# comment\nNAME="Debian GNU/Linux"\nVERSION_ID=\'10\'\n\nBROKEN\n')
        assert values == {"NAME": "Debian GNU/Linux", "VERSION_ID": "10"}


class TestIdentifyOS:
    def test_alpine(self):
        assert _os({"etc/alpine-release": b"3.10.2\n"}) == ("alpine", "3.10.2")

    def test_debian_os_release(self):
        files = {
            "etc/os-release": b'PRETTY_NAME="Debian GNU/Linux 10 (buster)"\nID=debian\nVERSION_ID="10"\n',
            "etc/debian_version": b"10.1\n",
        }
        assert _os(files) == ("debian", "10")

    def test_debian_version_only(self):
        assert _os({"etc/debian_version": b"9.8\n"}) == ("debian", "9.8")

    def test_ubuntu_os_release(self):
        files = {"etc/os-release": b'NAME="Ubuntu"\nID=ubuntu\nVERSION_ID="18.04"\n'}
        assert _os(files) == ("ubuntu", "18.04")

    def test_ubuntu_lsb_release(self):
        files = {
            "etc/debian_version": b"buster/sid\n",
            "etc/lsb-release": b"DISTRIB_ID=Ubuntu\nDISTRIB_RELEASE=18.04\nDISTRIB_CODENAME=bionic\n",
        }
        assert _os(files) == ("ubuntu", "18.04")

    def test_usr_lib_os_release(self):
        files = {"usr/lib/os-release": b"ID=debian\nVERSION_ID=\"11\"\n"}
        assert _os(files) == ("debian", "11")

    def test_centos(self):
        files = {"etc/centos-release": b"CentOS Linux release 7.6.1810 (Core)\n"}
        assert _os(files) == ("centos", "7.6.1810")

    def test_redhat(self):
        files = {"etc/redhat-release": b"Red Hat Enterprise Linux Server release 7.7 (Maipo)\n"}
        assert _os(files) == ("redhat", "7.7")

    def test_rhel_os_release(self):
        files = {"etc/os-release": b'ID="rhel"\nVERSION_ID="8.1"\n'}
        assert _os(files) == ("redhat", "8.1")

    def test_unknown_id_passes_through(self):
        files = {"etc/os-release": b"ID=fedora\nVERSION_ID=31\n"}
        assert _os(files) == ("fedora", "31")

    def test_fedora_redhat_release_is_not_redhat(self):
        files = {
            "etc/redhat-release": b"Fedora release 31 (Thirty One)\n",
            "etc/os-release": b"ID=fedora\nVERSION_ID=31\n",
        }
        assert _os(files) == ("fedora", "31")

    def test_no_release_files(self):
        with pytest.raises(OSDetectionError, match="unknown OS"):
            identify_os({"usr/bin/ls": b""})
