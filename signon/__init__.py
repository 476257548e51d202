"""Browser based sign-in for end-to-end test suites, with reusable session state.

Functionality is found in the sub modules:

* `signon.flow` - drive an OIDC login through an identity provider
* `signon.storage` - persist, validate and garbage collect session state per role
* `signon.totp` - time based one time codes for MFA
* `signon.idp` - identity provider specific handlers
"""
from .__version__ import __version__

__all__ = ['__version__']
