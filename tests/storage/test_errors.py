import pytest

from filestore.storage.errors import ConfigurationError, ErrorKind, StorageError


class TestStorageError:
    def test_not_found_maps_to_404(self):
        err = StorageError(ErrorKind.NOT_FOUND, "File not found: k.txt", filename="k.txt")
        assert err.status_code == 404

    @pytest.mark.parametrize(
        "kind",
        [k for k in ErrorKind if k is not ErrorKind.NOT_FOUND],
    )
    def test_other_kinds_map_to_500(self, kind):
        assert StorageError(kind, "boom").status_code == 500

    def test_public_message_hides_internal_details(self):
        err = StorageError(
            ErrorKind.RETRIEVE_FAILED,
            "Failed to retrieve file from S3: /var/secret-bucket/k.txt",
            filename="k.txt",
        )
        assert "secret-bucket" not in err.public_message
        assert "k.txt" not in err.public_message

    def test_every_kind_has_public_message(self):
        for kind in ErrorKind:
            assert StorageError(kind, "x").public_message

    def test_str_is_message(self):
        err = StorageError(ErrorKind.SAVE_FAILED, "Failed to save file: a.txt", filename="a.txt")
        assert str(err) == "Failed to save file: a.txt"
        assert err.filename == "a.txt"
        assert "save_failed" in repr(err)


class TestConfigurationError:
    def test_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)
