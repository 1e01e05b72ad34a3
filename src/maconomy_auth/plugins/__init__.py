"""Built-in credential strategies.

* :mod:`~maconomy_auth.plugins.oauth2_auth_code` -- ``oauth2_pkce``.
* :mod:`~maconomy_auth.plugins.browser_login` -- ``sso_cookie``.
"""
