"""
Tests for the main application entry point.
"""

import os
import shutil
import tempfile
import pytest
from unittest.mock import patch

from devchain.errors import ElevationDeniedError
from devchain.main import DevChainApplication, main
from devchain.models.certificate import StoreName
from devchain.services.config_service import ConfigService


class TestDevChainApplication:
    """Test cases for DevChainApplication class."""

    def setup_method(self):
        """Setup test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.certs_dir = os.path.join(self.temp_dir, "certificates")
        self.hosts_path = os.path.join(self.temp_dir, "hosts")
        self.config_path = os.path.join(self.temp_dir, "devchain.properties")

        with open(self.hosts_path, 'w') as f:
            f.write("127.0.0.1 localhost\n")

        config_content = f"""
[certificates]
directory = {self.certs_dir}

[trust_store]
install = true
directory = {os.path.join(self.temp_dir, "anchors")}
personal_directory = {os.path.join(self.temp_dir, "personal")}
refresh_command =

[hosts]
file_path = {self.hosts_path}

[elevation]
required = false

[app]
log_level = DEBUG
log_file_path = {os.path.join(self.temp_dir, "logs", "devchain.log")}
"""
        with open(self.config_path, 'w') as f:
            f.write(config_content)

    def teardown_method(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def create_app(self):
        app = DevChainApplication(config_path=self.config_path)
        assert app.initialize()
        return app

    def cert_path(self, name):
        return os.path.join(self.certs_dir, name)

    def read_hosts(self):
        with open(self.hosts_path) as f:
            return f.read()

    def test_application_initialization(self):
        """Test that services are wired from the configuration file."""
        app = DevChainApplication(config_path=self.config_path)

        assert app.config is None
        assert app.initialize()
        assert app.config.certificates_dir == self.certs_dir
        assert app.config.require_elevation is False
        assert app.bundle_store.directory == self.certs_dir

        app.shutdown()

    def test_initialization_with_invalid_config(self):
        """Test that an unparsable configuration file fails initialization."""
        with open(self.config_path, 'a') as f:
            f.write("\n[hosts]\ndomain =\n")

        app = DevChainApplication(config_path=self.config_path)
        assert not app.initialize()

    def test_full_run_creates_chain(self):
        """Test that a first run creates all artifacts, installs them and maps the hosts."""
        app = self.create_app()
        try:
            assert app.run() == 0
        finally:
            app.shutdown()

        for name in ("test-root.pfx", "test-root.crt", "test-intermediate.pfx", "test-intermediate.crt",
                     "test-wildcard.pfx", "test-wildcard.crt", "test-wildcard.key"):
            assert os.path.exists(self.cert_path(name)), name
        assert not os.path.exists(self.cert_path("test-root.key"))

        root, _ = app.bundle_store.load(self.cert_path("test-root.pfx"))
        intermediate, _ = app.bundle_store.load(self.cert_path("test-intermediate.pfx"))
        leaf, _ = app.bundle_store.load(self.cert_path("test-wildcard.pfx"))
        assert intermediate.certificate.issuer == root.subject
        assert leaf.certificate.issuer == intermediate.subject
        assert app.security_service.verify_chain(
            [root.certificate, intermediate.certificate, leaf.certificate]
        ).is_valid

        assert app.trust_store.find_by_subject(root.subject, StoreName.ROOT)
        assert app.trust_store.find_by_subject(intermediate.subject, StoreName.CERTIFICATE_AUTHORITY)
        assert app.trust_store.find_by_subject(leaf.subject, StoreName.MY)

        hosts = self.read_hosts()
        assert hosts.startswith("127.0.0.1 localhost\n")
        assert "# BEGIN site.test\n127.0.0.2 site.test\n" in hosts

    def test_second_run_reuses_artifacts(self):
        """Test that existing archives are not regenerated."""
        app = self.create_app()
        try:
            assert app.run() == 0
        finally:
            app.shutdown()

        paths = [self.cert_path(name) for name in ("test-root.pfx", "test-intermediate.pfx", "test-wildcard.pfx")]
        before = {}
        for path in paths:
            with open(path, 'rb') as f:
                before[path] = f.read()

        second = self.create_app()
        try:
            with patch.object(second.factory, 'create_root_ca') as mock_root, \
                    patch.object(second.factory, 'create_intermediate_ca') as mock_intermediate, \
                    patch.object(second.factory, 'create_leaf') as mock_leaf:
                assert second.run() == 0
        finally:
            second.shutdown()

        mock_root.assert_not_called()
        mock_intermediate.assert_not_called()
        mock_leaf.assert_not_called()
        for path in paths:
            with open(path, 'rb') as f:
                assert f.read() == before[path]

        hosts = self.read_hosts()
        assert hosts.count("# BEGIN site.test") == 1
        assert hosts.count("# END site.test") == 1

    def test_missing_leaf_is_regenerated_from_existing_intermediate(self):
        """Test that only missing artifacts are created."""
        app = self.create_app()
        try:
            assert app.run() == 0
        finally:
            app.shutdown()

        with open(self.cert_path("test-root.pfx"), 'rb') as f:
            root_bytes = f.read()
        os.remove(self.cert_path("test-wildcard.pfx"))

        second = self.create_app()
        try:
            assert second.run() == 0
        finally:
            second.shutdown()

        with open(self.cert_path("test-root.pfx"), 'rb') as f:
            assert f.read() == root_bytes
        assert os.path.exists(self.cert_path("test-wildcard.pfx"))

    def test_elevation_denied(self):
        """Test that a denied elevation aborts before any artifact is written."""
        app = self.create_app()
        try:
            with patch.object(app.elevation_service, 'ensure_elevated',
                              side_effect=ElevationDeniedError("not an administrator")):
                assert app.run() == 1
            assert app.logging_service.get_error_summary()['error_types'] == {'ElevationDeniedError': 1}
        finally:
            app.shutdown()

        assert not os.path.exists(self.certs_dir)
        assert self.read_hosts() == "127.0.0.1 localhost\n"

    def test_corrupt_root_aborts_remaining_steps(self):
        """Test that an unreadable root archive stops the run before the intermediate."""
        os.makedirs(self.certs_dir)
        with open(self.cert_path("test-root.pfx"), 'wb') as f:
            f.write(b"not a pkcs12 archive")

        app = self.create_app()
        try:
            assert app.run() == 1
            summary = app.logging_service.get_step_summary()
            assert summary['steps'] == ["root", "intermediate"]
            assert summary['failed'] == ["intermediate"]
        finally:
            app.shutdown()

        assert not os.path.exists(self.cert_path("test-intermediate.pfx"))
        assert not os.path.exists(self.cert_path("test-wildcard.pfx"))
        assert "# BEGIN site.test" not in self.read_hosts()

    def test_non_utf8_hosts_file(self):
        """Test that a Latin-1 hosts file does not abort the run."""
        with open(self.hosts_path, 'wb') as f:
            f.write(b"127.0.0.1 localhost # caf\xe9\n")

        app = self.create_app()
        try:
            assert app.run() == 0
            assert app.logging_service.get_step_summary()['failed'] == []
        finally:
            app.shutdown()

        with open(self.hosts_path, 'rb') as f:
            content = f.read()
        assert content.startswith(b"127.0.0.1 localhost # caf\xe9\n")
        assert b"# BEGIN site.test\n" in content

    def test_trust_store_installation_disabled(self):
        """Test that installation can be switched off."""
        app = self.create_app()
        app.config.install_trust_store = False
        try:
            assert app.run() == 0
        finally:
            app.shutdown()

        assert not os.path.exists(os.path.join(self.temp_dir, "anchors"))
        assert not os.path.exists(os.path.join(self.temp_dir, "personal"))

    def test_get_status(self):
        """Test the artifact status report."""
        app = self.create_app()
        try:
            status = app.get_status()
            assert status['root'] == "not_created"

            app.run()
            status = app.get_status()
            assert status['root'] == "persisted"
            assert status['leaf'] == "persisted"
            assert status['hosts_file_path'] == self.hosts_path
        finally:
            app.shutdown()


class TestMainFunction:
    """Test cases for the command line entry point."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_write_default_config(self):
        """Test that --write-default-config writes a loadable file."""
        path = os.path.join(self.temp_dir, "devchain.properties")

        with patch('sys.argv', ['devchain', '--write-default-config', path]):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 0
        assert ConfigService().load_config(path).leaf_subject == "*.site.test"

    def test_check_config(self, capsys):
        """Test that --check-config reports status without provisioning."""
        path = os.path.join(self.temp_dir, "devchain.properties")
        with open(path, 'w') as f:
            f.write(f"[certificates]\ndirectory = {os.path.join(self.temp_dir, 'certs')}\n[app]\nlog_file_path =\n")

        with patch('sys.argv', ['devchain', '--config', path, '--check-config']):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 0
        assert "Configuration check passed" in capsys.readouterr().out
        assert not os.path.exists(os.path.join(self.temp_dir, 'certs'))

    @patch('devchain.main.DevChainApplication')
    def test_run_exit_code(self, mock_app_class):
        """Test that the process exits with the run's status."""
        mock_app = mock_app_class.return_value
        mock_app.initialize.return_value = True
        mock_app.run.return_value = 1

        with patch('sys.argv', ['devchain']):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1
        mock_app.shutdown.assert_called_once()

    @patch('devchain.main.DevChainApplication')
    def test_initialization_failure(self, mock_app_class):
        """Test exit status 1 when initialization fails."""
        mock_app_class.return_value.initialize.return_value = False

        with patch('sys.argv', ['devchain']):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1
