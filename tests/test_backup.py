"""
Tests for CastleMock Lite Project Backups
"""

import itertools

import pytest

from castlemock_lite.catalog import CatalogStore, MemoryStorage
from castlemock_lite.catalog.backup import (
    BACKUP_TYPE,
    export_project,
    rebuild_from_backup,
    validate_backup,
)
from castlemock_lite.catalog.models import ResponseStrategy
from castlemock_lite.errors import BackupFormatError


@pytest.fixture
def store():
    counter = itertools.count(1)
    return CatalogStore(MemoryStorage(), id_factory=lambda: f"id{next(counter)}")


@pytest.fixture
def project(store):
    """Running project with two responses, the second as default."""
    project = store.create_project('Shop', 'Demo', components={'schemas': {}})
    endpoint = store.create_endpoint(project.id, 'POST', '/orders', 'Create order',
                                     ResponseStrategy.QUERY_MATCH)
    store.create_response(endpoint.id, 'OK', '{"ok": true}')
    second = store.create_response(endpoint.id, 'Rejected', '{"ok": false}', status_code=422)
    store.set_default_response(endpoint.id, second.id)
    store.update_project_status(project.id, 'running')
    return store.get_project(project.id)


class TestExport:
    """Test export_project."""

    def test_document_shape(self, store, project):
        backup = export_project(store.snapshot(), project.id, timestamp=123)

        assert backup['type'] == BACKUP_TYPE
        assert backup['version'] == 1
        assert backup['timestamp'] == 123
        assert backup['project']['name'] == 'Shop'
        assert len(backup['endpoints']) == 1
        assert len(backup['responses']) == 2

    def test_missing_project(self, store):
        with pytest.raises(KeyError):
            export_project(store.snapshot(), 'missing')


class TestRebuild:
    """Test rebuild_from_backup and CatalogStore.import_backup."""

    def test_round_trip_with_fresh_ids(self, store, project):
        """Test a restored project mirrors the original under new ids."""
        backup = store.export_project(project.id)

        restored = store.import_backup(backup)

        assert restored.id != project.id
        assert restored.base_url != project.base_url
        assert restored.name == 'Shop'
        assert restored.status == 'stopped'
        assert restored.components == {'schemas': {}}

        original = store.get_endpoints(project.id)[0]
        copy = store.get_endpoints(restored.id)[0]
        assert copy.id != original.id
        assert (copy.method, copy.path, copy.response_strategy) == (
            original.method, original.path, original.response_strategy
        )

        responses = store.get_responses(copy.id)
        assert [r.name for r in responses] == ['OK', 'Rejected']
        assert all(r.endpoint_id == copy.id for r in responses)

    def test_default_response_remapped(self, store, project):
        backup = store.export_project(project.id)

        restored = store.import_backup(backup)

        endpoint = store.get_endpoints(restored.id)[0]
        default = store.get_response(endpoint.default_response_id)
        assert default.name == 'Rejected'
        assert default.endpoint_id == endpoint.id

    def test_name_override(self, store, project):
        restored = store.import_backup(store.export_project(project.id), name='Copy', description='New')

        assert restored.name == 'Copy'
        assert restored.description == 'New'

    def test_orphan_responses_dropped(self, store, project):
        backup = store.export_project(project.id)
        backup['responses'].append({'id': 'x', 'endpointId': 'nowhere', 'name': 'Orphan'})

        _, _, responses = rebuild_from_backup(backup)

        assert 'Orphan' not in [r.name for r in responses]

    def test_dangling_default_cleared(self, store, project):
        backup = store.export_project(project.id)
        backup['endpoints'][0]['defaultResponseId'] = 'deleted'

        _, endpoints, _ = rebuild_from_backup(backup)

        assert endpoints[0].default_response_id is None


class TestValidate:
    """Test backup validation."""

    @pytest.mark.parametrize('document', [
        [],
        {},
        {'type': 'something-else', 'project': {}},
        {'type': BACKUP_TYPE},
    ])
    def test_rejects_invalid(self, document):
        with pytest.raises(BackupFormatError):
            validate_backup(document)

    def test_malformed_records(self, store, project):
        """Test broken endpoint records surface as BackupFormatError."""
        backup = store.export_project(project.id)
        backup['endpoints'] = [{'name': 'no id'}]

        with pytest.raises(BackupFormatError):
            store.import_backup(backup)

    def test_failed_import_leaves_catalog_unchanged(self, store, project):
        before = store.snapshot()

        with pytest.raises(BackupFormatError):
            store.import_backup({'type': 'nope'})

        assert store.snapshot() == before
