"""Safety gate components: classifier, estimator, tokens, pending store, audit, policy."""
