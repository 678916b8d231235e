"""Tests for the notification filter."""

import pytest

from sentinel_cainjector import WatchEvent, accepts, names, should_update_configmaps
from sentinel_cainjector.models import CANONICAL_BUNDLE_REF

LABEL = names.TRUSTED_CA_BUNDLE_CONFIGMAP_LABEL


def event(event_type="MODIFIED", name="app-ca", namespace="team-a", labels=None):
    return WatchEvent(event_type=event_type, name=name, namespace=namespace, labels=labels or {})


class TestEventFilter:
    """Test cases for the event filter."""

    @pytest.mark.parametrize("event_type", ["ADDED", "MODIFIED"])
    def test_accepts_labelled_configmap(self, event_type):
        assert accepts(event(event_type, labels={LABEL: "true"}))

    def test_accepts_canonical_bundle_without_label(self):
        assert accepts(event(name=CANONICAL_BUNDLE_REF.name, namespace=CANONICAL_BUNDLE_REF.namespace))

    def test_rejects_unlabelled_configmap(self):
        assert not accepts(event(labels={"app": "web"}))

    @pytest.mark.parametrize("value", ["false", "True", "", "yes"])
    def test_label_must_be_exactly_true(self, value):
        assert not accepts(event(labels={LABEL: value}))

    def test_canonical_name_in_other_namespace_rejected(self):
        assert not accepts(event(name=CANONICAL_BUNDLE_REF.name, namespace="default"))

    def test_rejects_deletions(self):
        assert not accepts(event("DELETED", labels={LABEL: "true"}))
        assert not accepts(
            event(
                "DELETED",
                name=CANONICAL_BUNDLE_REF.name,
                namespace=CANONICAL_BUNDLE_REF.namespace,
            )
        )

    def test_rejects_bookmarks(self):
        assert not accepts(event("BOOKMARK", labels={LABEL: "true"}))

    def test_should_update_configmaps_handles_missing_labels(self):
        assert not should_update_configmaps("app-ca", "team-a", None)
