"""
Unit tests for role-specific extension sets.
"""
import ipaddress
import unittest

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID

from devchain.errors import InvalidArgumentError
from devchain.security.certificate_factory import CertificateFactory
from devchain.security.extensions import (
    build_intermediate_extensions,
    build_leaf_extensions,
    build_root_extensions,
    build_subject_alternative_names,
    classify_alternate_name,
)
from devchain.security.key_backend import generate_key_pair


def by_type(extensions):
    """Index an extension set by extension class."""
    indexed = {}
    for extension, critical in extensions:
        indexed[type(extension)] = (extension, critical)
    return indexed


class TestRootExtensions(unittest.TestCase):
    """Test cases for build_root_extensions."""

    def setUp(self):
        self.public_key = generate_key_pair().public_key()
        self.extensions = by_type(build_root_extensions(self.public_key))

    def test_each_extension_once(self):
        """Test that every extension type appears at most once."""
        extensions = build_root_extensions(self.public_key)
        types = [type(extension) for extension, _ in extensions]
        self.assertEqual(len(types), len(set(types)))

    def test_basic_constraints(self):
        """Test CA flag and path length of three."""
        constraints, critical = self.extensions[x509.BasicConstraints]
        self.assertTrue(constraints.ca)
        self.assertEqual(constraints.path_length, 3)
        self.assertTrue(critical)

    def test_key_usage(self):
        """Test that root keys only sign certificates and CRLs."""
        usage, critical = self.extensions[x509.KeyUsage]
        self.assertTrue(usage.key_cert_sign)
        self.assertTrue(usage.crl_sign)
        self.assertFalse(usage.digital_signature)
        self.assertFalse(usage.key_encipherment)
        self.assertTrue(critical)

    def test_authority_key_identifier_is_own_subject_key_identifier(self):
        """Test that the self-issued root points at its own key."""
        ski, _ = self.extensions[x509.SubjectKeyIdentifier]
        aki, _ = self.extensions[x509.AuthorityKeyIdentifier]

        self.assertEqual(ski.digest, x509.SubjectKeyIdentifier.from_public_key(self.public_key).digest)
        self.assertEqual(aki.key_identifier, ski.digest)
        self.assertNotIn(x509.ExtendedKeyUsage, self.extensions)


class TestIntermediateExtensions(unittest.TestCase):
    """Test cases for build_intermediate_extensions."""

    @classmethod
    def setUpClass(cls):
        cls.root = CertificateFactory().create_root_ca("extensions-root")

    def setUp(self):
        self.public_key = generate_key_pair().public_key()
        self.extensions = by_type(build_intermediate_extensions(self.public_key, self.root.certificate))

    def test_basic_constraints(self):
        """Test that the intermediate may only sign end entities."""
        constraints, critical = self.extensions[x509.BasicConstraints]
        self.assertTrue(constraints.ca)
        self.assertEqual(constraints.path_length, 0)
        self.assertTrue(critical)

    def test_key_usage(self):
        """Test digital signature plus certificate and CRL signing."""
        usage, critical = self.extensions[x509.KeyUsage]
        self.assertTrue(usage.digital_signature)
        self.assertTrue(usage.key_cert_sign)
        self.assertTrue(usage.crl_sign)
        self.assertFalse(usage.key_encipherment)
        self.assertTrue(critical)

    def test_authority_key_identifier_names_issuer(self):
        """Test that the AKI carries the issuer key id, issuer name and serial."""
        aki, critical = self.extensions[x509.AuthorityKeyIdentifier]
        root_ski = self.root.certificate.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value

        self.assertEqual(aki.key_identifier, root_ski.digest)
        self.assertEqual(aki.authority_cert_issuer, [x509.DirectoryName(self.root.certificate.issuer)])
        self.assertEqual(aki.authority_cert_serial_number, self.root.certificate.serial_number)
        self.assertFalse(critical)

    def test_extended_key_usage(self):
        """Test client, server and OCSP signing usages."""
        usage, critical = self.extensions[x509.ExtendedKeyUsage]
        self.assertEqual(
            list(usage),
            [ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.OCSP_SIGNING]
        )
        self.assertFalse(critical)


class TestLeafExtensions(unittest.TestCase):
    """Test cases for build_leaf_extensions."""

    @classmethod
    def setUpClass(cls):
        cls.root = CertificateFactory().create_root_ca("extensions-leaf-root")

    def setUp(self):
        self.public_key = generate_key_pair().public_key()

    def test_basic_constraints_and_key_usage(self):
        """Test end-entity constraints and usages."""
        extensions = by_type(build_leaf_extensions(self.public_key, "www.site.test"))

        constraints, critical = extensions[x509.BasicConstraints]
        self.assertFalse(constraints.ca)
        self.assertIsNone(constraints.path_length)
        self.assertTrue(critical)

        usage, critical = extensions[x509.KeyUsage]
        self.assertTrue(usage.digital_signature)
        self.assertTrue(usage.key_encipherment)
        self.assertFalse(usage.key_cert_sign)
        self.assertTrue(critical)

    def test_alternate_names_classified(self):
        """Test that IP literals become IP entries and everything else DNS entries."""
        extensions = by_type(build_leaf_extensions(
            self.public_key, "*.site.test", ["10.0.0.5", "api.example.test"]
        ))
        san, _ = extensions[x509.SubjectAlternativeName]

        self.assertEqual(san.get_values_for_type(x509.DNSName), ["*.site.test", "api.example.test"])
        self.assertEqual(san.get_values_for_type(x509.IPAddress), [ipaddress.ip_address("10.0.0.5")])

    def test_self_issued_fallback(self):
        """Test that without issuer the AKI mirrors the own SKI."""
        extensions = by_type(build_leaf_extensions(self.public_key, "localhost"))
        ski, _ = extensions[x509.SubjectKeyIdentifier]
        aki, _ = extensions[x509.AuthorityKeyIdentifier]

        self.assertEqual(aki.key_identifier, ski.digest)
        self.assertIsNone(aki.authority_cert_issuer)

    def test_issuer_authority_key_identifier(self):
        """Test that with issuer the AKI points at the issuer."""
        extensions = by_type(build_leaf_extensions(self.public_key, "localhost", (), self.root.certificate))
        aki, _ = extensions[x509.AuthorityKeyIdentifier]
        root_ski = self.root.certificate.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value

        self.assertEqual(aki.key_identifier, root_ski.digest)
        self.assertEqual(aki.authority_cert_serial_number, self.root.certificate.serial_number)


class TestAlternateNames(unittest.TestCase):
    """Test cases for SAN helpers."""

    def test_classify_ipv6(self):
        """Test that IPv6 literals are IP entries."""
        self.assertEqual(classify_alternate_name("::1"), x509.IPAddress(ipaddress.ip_address("::1")))

    def test_classify_dns(self):
        """Test that names that are not IP literals are DNS entries."""
        self.assertEqual(classify_alternate_name("10.0.0.256"), x509.DNSName("10.0.0.256"))
        self.assertEqual(classify_alternate_name("localhost"), x509.DNSName("localhost"))

    def test_subject_name_is_first_entry(self):
        """Test the order of SAN entries."""
        san = build_subject_alternative_names("site.test", ["127.0.0.2"])
        self.assertEqual(list(san), [x509.DNSName("site.test"), x509.IPAddress(ipaddress.ip_address("127.0.0.2"))])

    def test_internationalized_names_become_a_labels(self):
        """Test that non-ASCII DNS names are stored in their ASCII form."""
        self.assertEqual(classify_alternate_name("bücher.test"), x509.DNSName("xn--bcher-kva.test"))

        san = build_subject_alternative_names("*.bücher.test", ["bücher.test"])
        self.assertEqual(list(san), [x509.DNSName("*.xn--bcher-kva.test"), x509.DNSName("xn--bcher-kva.test")])

    def test_unencodable_name_rejected(self):
        """Test that a name which cannot be IDNA encoded raises InvalidArgumentError."""
        with self.assertRaises(InvalidArgumentError):
            classify_alternate_name("ü" + "a" * 70 + ".test")

    def test_leaf_with_internationalized_alternate_name(self):
        """Test leaf creation with an internationalized alternate name."""
        leaf = CertificateFactory().create_leaf("dev.test", None, 365, ["bücher.test"])

        san = leaf.certificate.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        self.assertEqual(san.get_values_for_type(x509.DNSName), ["dev.test", "xn--bcher-kva.test"])


if __name__ == '__main__':
    unittest.main()
