"""Fixed identities and keys used by the trust bundle injector."""

# Canonical bundle
TRUSTED_CA_BUNDLE_CONFIGMAP = "trusted-ca-bundle"
TRUSTED_CA_BUNDLE_CONFIGMAP_NS = "openshift-config-managed"
TRUSTED_CA_BUNDLE_CONFIGMAP_KEY = "ca-bundle.crt"

# Targets opt in with this label
TRUSTED_CA_BUNDLE_CONFIGMAP_LABEL = "config.openshift.io/inject-trusted-cabundle"
TRUSTED_CA_BUNDLE_LABEL_VALUE = "true"

# Server-side ownership of the injected key
FIELD_MANAGER = "configmap_ca"

# Health component reported by the injector
INJECTOR_CONFIG_COMPONENT = "InjectorConfig"

# Abort a pass once this many targets have failed
MAX_TARGET_FAILURES = 5
