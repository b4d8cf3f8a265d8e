"""Resource descriptors for every supported Casdoor object kind.

Attribute names follow the Terraform-style snake_case schema; JSON keys are
derived with ``camelize`` unless ``api_name`` overrides them. Nested object
lists (e.g. webhook headers, syncer table columns) are passed through with
Casdoor's own JSON keys.
"""
from __future__ import annotations
from typing import Any

from .adapter import ORGANIZATION, ResourceDescriptor
from .identifier import IdentifierStyle
from .reconcile import FieldKind, FieldSpec, FieldType


def _str(name: str, **kw: Any) -> FieldSpec:
    return FieldSpec(name, FieldType.STRING, **kw)


def _int(name: str, **kw: Any) -> FieldSpec:
    return FieldSpec(name, FieldType.INT, **kw)


def _float(name: str, **kw: Any) -> FieldSpec:
    return FieldSpec(name, FieldType.FLOAT, **kw)


def _bool(name: str, **kw: Any) -> FieldSpec:
    return FieldSpec(name, FieldType.BOOL, **kw)


def _list(name: str, **kw: Any) -> FieldSpec:
    return FieldSpec(name, FieldType.LIST, **kw)


def _map(name: str, **kw: Any) -> FieldSpec:
    return FieldSpec(name, FieldType.MAP, **kw)


def _server(name: str, type: FieldType = FieldType.STRING, **kw: Any) -> FieldSpec:
    return FieldSpec(name, type, FieldKind.SERVER, computed=True, **kw)


def _masked(name: str, **kw: Any) -> FieldSpec:
    return FieldSpec(name, FieldType.STRING, FieldKind.MASKED, sensitive=True, **kw)


def _secret(name: str, **kw: Any) -> FieldSpec:
    return FieldSpec(name, FieldType.STRING, sensitive=True, **kw)


def _key(owner_default: str | None = None) -> tuple[FieldSpec, ...]:
    """owner, name and created_time, shared by every named kind."""
    if owner_default is None:
        owner = _str("owner", required=True, force_new=True)
    else:
        owner = _str("owner", force_new=True, default=owner_default)
    return (owner, _str("name", required=True, force_new=True), _server("created_time"))


ADAPTER = ResourceDescriptor(
    type_name="casdoor_adapter",
    kind="adapter",
    title="Adapter",
    fields=_key() + (
        _bool("use_same_db"),
        _str("type"),
        _str("database_type"),
        _str("host"),
        _int("port"),
        _str("user"),
        _secret("password"),
        _str("database"),
        _str("table"),
        _str("table_name_prefix"),
        _bool("is_enabled"),
    ),
)

APPLICATION = ResourceDescriptor(
    type_name="casdoor_application",
    kind="application",
    title="Application",
    id_style=IdentifierStyle.NAME,
    default_owner="admin",
    fields=_key(owner_default="admin") + (
        _str("display_name", required=True),
        _str("title"),
        _str("favicon"),
        _str("logo"),
        _str("homepage_url"),
        _str("description"),
        _str("organization", required=True, force_new=True),
        _str("cert"),
        _str("default_group"),
        _bool("enable_password", default=True),
        _bool("enable_sign_up", default=True),
        _bool("enable_signin_session"),
        _bool("enable_auto_signin"),
        _bool("enable_code_signin"),
        _bool("enable_exclusive_signin"),
        _bool("enable_saml_compress"),
        _bool("enable_saml_c14n10"),
        _bool("enable_saml_post_binding"),
        _bool("enable_saml_assertion_signature"),
        _bool("disable_saml_attributes"),
        _bool("use_email_as_saml_name_id"),
        _bool("enable_web_authn"),
        _bool("enable_link_with_email"),
        _bool("disable_signin"),
        _bool("is_shared"),
        _server("client_id"),
        _server("client_secret", sensitive=True),
        _list("redirect_uris"),
        _str("token_format", default="JWT"),
        _str("token_signing_method"),
        _list("token_fields"),
        _list("token_attributes"),
        _float("expire_in_hours", default=168.0),
        _float("refresh_expire_in_hours", default=168.0),
        _int("cookie_expire_in_hours"),
        _list("grant_types"),
        _str("saml_reply_url"),
        _str("saml_hash_algorithm"),
        _list("saml_attributes"),
        _str("signup_url"),
        _str("signin_url"),
        _str("forget_url"),
        _str("affiliation_url"),
        _str("header_html"),
        _str("footer_html"),
        _str("signup_html"),
        _str("signin_html"),
        _str("form_css"),
        _str("form_css_mobile"),
        _int("form_offset"),
        _str("form_side_html"),
        _str("form_background_url"),
        _str("form_background_url_mobile"),
        _map("theme_data"),
        _str("ip_restriction"),
        _str("ip_whitelist"),
        _int("failed_signin_limit", default=5),
        _int("failed_signin_frozen_time", default=15),
        _int("code_resend_timeout"),
        _str("org_choice_mode"),
        _str("terms_of_use"),
        _list("tags"),
        _server("cert_public_key"),
        _str("forced_redirect_origin"),
        _int("order"),
        _list("providers"),
        _list("signin_methods"),
        _list("signup_items"),
        _list("signin_items"),
    ),
)

CERT = ResourceDescriptor(
    type_name="casdoor_cert",
    kind="cert",
    title="Cert",
    fields=_key() + (
        _str("display_name"),
        _str("scope", default="JWT"),
        _str("type", default="x509"),
        _str("crypto_algorithm", default="RS256"),
        _int("bit_size", default=4096),
        _int("expire_in_years", default=20),
        _server("certificate"),
        _server("private_key", sensitive=True),
        _str("authority_public_key"),
        _str("authority_root_public_key"),
    ),
)

ENFORCER = ResourceDescriptor(
    type_name="casdoor_enforcer",
    kind="enforcer",
    title="Enforcer",
    refresh_after_update=True,
    fields=_key() + (
        _server("updated_time"),
        _map("model_cfg"),
        _str("display_name"),
        _str("description"),
        _str("model", required=True),
        _str("adapter"),
        _bool("is_enabled"),
    ),
)

GROUP = ResourceDescriptor(
    type_name="casdoor_group",
    kind="group",
    title="Group",
    refresh_after_update=True,
    fields=_key() + (
        _server("updated_time"),
        _str("display_name"),
        _str("manager"),
        _str("contact_email"),
        _str("type"),
        _str("parent_id"),
        _server("parent_name"),
        _server("title"),
        _server("key"),
        _bool("have_children"),
        _bool("is_top_group"),
        _list("users"),
        _bool("is_enabled", default=True),
    ),
)

# Identity providers are "provider" objects in the Casdoor API.
IDENTITY_PROVIDER = ResourceDescriptor(
    type_name="casdoor_provider",
    kind="provider",
    title="Provider",
    id_style=IdentifierStyle.NAME,
    default_owner="admin",
    fields=(
        _str("owner", required=True, force_new=True),
        _str("name", required=True, force_new=True),
        _str("display_name"),
        _str("category", required=True),
        _str("type", required=True),
        _str("sub_type"),
        _str("method"),
        _str("client_id"),
        _secret("client_secret"),
        _str("client_id_2"),
        _secret("client_secret_2"),
        _str("cert"),
        _str("custom_auth_url"),
        _str("custom_token_url"),
        _str("custom_user_info_url"),
        _str("custom_logo"),
        _str("scopes"),
        _map("user_mapping"),
        _str("host"),
        _int("port"),
        _bool("disable_ssl"),
        _str("title"),
        _str("content"),
        _str("receiver"),
        _str("region_id"),
        _str("sign_name"),
        _str("template_code"),
        _str("app_id"),
        _str("endpoint"),
        _str("intranet_endpoint"),
        _str("domain"),
        _str("bucket"),
        _str("path_prefix"),
        _str("metadata"),
        _str("idp", api_name="idP"),
        _str("issuer_url"),
        _bool("enable_sign_authn_request"),
        _str("provider_url"),
    ),
)

LDAP = ResourceDescriptor(
    type_name="casdoor_ldap",
    kind="ldap",
    title="LDAP",
    id_style=IdentifierStyle.ID,
    key_field="id",
    default_owner=ORGANIZATION,
    fields=(
        _str("id", required=True, force_new=True),
        _str("owner", required=True, force_new=True),
        _server("created_time"),
        _str("server_name", required=True),
        _str("host", required=True),
        _int("port", required=True),
        _bool("enable_ssl"),
        _bool("allow_self_signed_cert"),
        _str("username", required=True),
        _masked("password"),
        _str("base_dn", required=True),
        _str("filter"),
        _list("filter_fields"),
        _str("default_group"),
        _str("password_type"),
        _map("custom_attributes"),
        _int("auto_sync"),
        _server("last_sync"),
    ),
)

MODEL = ResourceDescriptor(
    type_name="casdoor_model",
    kind="model",
    title="Model",
    refresh_after_update=True,
    fields=_key() + (
        _server("updated_time"),
        _str("description"),
        _str("display_name"),
        # Casdoor normalizes the text; the stored value follows the server.
        _server("model_text", required=True),
        _str("manager"),
        _str("contact_email"),
        _str("type"),
        _str("parent_id"),
        _bool("is_top_model"),
        _bool("is_enabled"),
    ),
)

ORGANIZATION_RESOURCE = ResourceDescriptor(
    type_name="casdoor_organization",
    kind="organization",
    title="Organization",
    fields=_key(owner_default="admin") + (
        _str("display_name", required=True),
        _str("website_url"),
        _str("logo"),
        _str("logo_dark"),
        _str("favicon"),
        _bool("has_privilege_consent"),
        _str("password_type", default="bcrypt"),
        _str("password_salt"),
        _list("password_options"),
        _str("password_obfuscator_type"),
        _secret("password_obfuscator_key"),
        _int("password_expire_days"),
        _list("country_codes"),
        _str("default_avatar"),
        _str("default_application"),
        _list("user_types"),
        _list("tags"),
        _list("languages"),
        _map("theme_data"),
        _masked("master_password"),
        _masked("default_password"),
        _masked("master_verification_code"),
        _str("ip_whitelist"),
        _int("init_score"),
        _bool("enable_soft_deletion"),
        _bool("is_profile_public"),
        _bool("use_email_as_username"),
        _bool("enable_tour"),
        _bool("disable_signin"),
        _str("ip_restriction"),
        _list("nav_items"),
        _list("user_nav_items"),
        _list("widget_items"),
        _list("mfa_items"),
        _int("mfa_remember_in_hours", default=12),
        _list("account_items"),
        _float("org_balance"),
        _float("user_balance"),
        _float("balance_credit"),
        _server("balance_currency"),
        _str("account_menu"),
        _str("dcr_policy"),
    ),
)

PERMISSION = ResourceDescriptor(
    type_name="casdoor_permission",
    kind="permission",
    title="Permission",
    fields=_key() + (
        _str("display_name"),
        _str("description"),
        _list("users"),
        _list("groups"),
        _list("roles"),
        _list("domains"),
        _str("model"),
        _str("adapter"),
        _str("resource_type"),
        _list("resources"),
        _list("actions"),
        _str("effect", default="Allow"),
        _bool("is_enabled", default=True),
        _str("submitter"),
        _str("approver"),
        _str("approve_time"),
        _str("state"),
    ),
)

PLAN = ResourceDescriptor(
    type_name="casdoor_plan",
    kind="plan",
    title="Plan",
    fields=_key() + (
        _str("display_name"),
        _str("description"),
        _float("price"),
        _str("currency"),
        _str("period"),
        _server("product"),
        _list("payment_providers"),
        _bool("is_enabled", default=True),
        _server("role"),
        _list("options"),
    ),
)

PRICING = ResourceDescriptor(
    type_name="casdoor_pricing",
    kind="pricing",
    title="Pricing",
    fields=_key() + (
        _str("display_name"),
        _str("description"),
        _list("plans"),
        _bool("is_enabled", default=True),
        _int("trial_duration"),
        _str("application"),
        _str("submitter"),
        _str("approver"),
        _str("approve_time"),
        _str("state"),
    ),
)

PRODUCT = ResourceDescriptor(
    type_name="casdoor_product",
    kind="product",
    title="Product",
    id_style=IdentifierStyle.NAME,
    default_owner=ORGANIZATION,
    refresh_after_update=True,
    fields=_key() + (
        _str("display_name"),
        _str("image"),
        _str("detail"),
        _str("description"),
        _str("tag"),
        _str("currency"),
        _float("price"),
        _int("quantity"),
        _int("sold"),
        _bool("is_recharge"),
        _list("recharge_options"),
        _bool("disable_custom_recharge"),
        _str("success_url"),
        _list("providers"),
        _str("state"),
    ),
)

ROLE = ResourceDescriptor(
    type_name="casdoor_role",
    kind="role",
    title="Role",
    fields=_key() + (
        _str("display_name"),
        _str("description"),
        _list("users"),
        _list("groups"),
        _list("roles"),
        _list("domains"),
        _bool("is_enabled", default=True),
    ),
)

SYNCER = ResourceDescriptor(
    type_name="casdoor_syncer",
    kind="syncer",
    title="Syncer",
    refresh_after_update=True,
    fields=_key() + (
        _str("organization"),
        _str("type"),
        _str("host"),
        _int("port"),
        _str("user"),
        _masked("password"),
        _str("database_type"),
        _str("ssl_mode"),
        _str("ssh_type"),
        _str("ssh_host"),
        _int("ssh_port"),
        _str("ssh_user"),
        _masked("ssh_password"),
        _str("cert"),
        _str("database"),
        _str("table"),
        _list("table_columns"),
        _str("affiliation_table"),
        _str("avatar_base_url"),
        _server("error_text"),
        _int("sync_interval"),
        _bool("is_read_only"),
        _bool("is_enabled", default=True),
    ),
)

TOKEN = ResourceDescriptor(
    type_name="casdoor_token",
    kind="token",
    title="Token",
    id_style=IdentifierStyle.NAME,
    default_owner="admin",
    fields=_key(owner_default="admin") + (
        _str("application", required=True),
        _str("organization", required=True),
        _str("user", required=True),
        _secret("code"),
        _server("access_token", sensitive=True),
        _server("refresh_token", sensitive=True),
        _server("access_token_hash"),
        _server("refresh_token_hash"),
        _int("expires_in", default=7200),
        _str("scope"),
        _str("token_type", default="Bearer"),
        _str("code_challenge"),
        _bool("code_is_used"),
        _int("code_expire_in"),
    ),
)

USER = ResourceDescriptor(
    type_name="casdoor_user",
    kind="user",
    title="User",
    preserve_on_update=("id",),
    fields=_key() + (
        _str("type", default="normal-user"),
        FieldSpec("password", FieldType.STRING, FieldKind.WRITE_ONLY, sensitive=True),
        _str("password_type"),
        _str("display_name"),
        _str("first_name"),
        _str("last_name"),
        _str("avatar"),
        _str("email"),
        _bool("email_verified"),
        _str("phone"),
        _str("country_code"),
        _str("region"),
        _str("location"),
        _str("affiliation"),
        _str("title"),
        _str("homepage"),
        _str("bio"),
        _str("tag"),
        _str("language"),
        _str("gender"),
        _str("birthday"),
        _str("education"),
        _int("score"),
        _int("karma"),
        _int("ranking"),
        _bool("is_admin"),
        _bool("is_forbidden"),
        _bool("is_deleted"),
        _str("signup_application"),
        _server("updated_time"),
        _server("deleted_time"),
        _str("external_id"),
        _masked("password_salt", computed=True),
        _str("avatar_type"),
        _str("permanent_avatar"),
        _list("address"),
        _list("addresses"),
        _str("id_card_type"),
        _secret("id_card"),
        _str("real_name"),
        _bool("is_verified"),
        _server("is_default_avatar", FieldType.BOOL),
        _server("is_online", FieldType.BOOL),
        _server("hash"),
        _server("pre_hash"),
        _float("balance"),
        _float("balance_credit"),
        _str("currency"),
        _server("balance_currency"),
        _server("register_type"),
        _str("register_source"),
        _masked("access_key", computed=True),
        _masked("access_secret", computed=True),
        _masked("access_token", computed=True),
        _masked("original_token", computed=True),
        _masked("original_refresh_token", computed=True),
        _server("created_ip"),
        _server("last_signin_time"),
        _server("last_signin_ip"),
        _map("social_logins"),
        _str("invitation"),
        _str("invitation_code"),
        _str("ldap"),
        _map("properties"),
        _bool("need_update_password"),
        _server("last_change_password_time"),
        _server("last_signin_wrong_time"),
        _server("signin_wrong_times", FieldType.INT),
        _str("preferred_mfa_type"),
        _list("recovery_codes", sensitive=True),
        _masked("totp_secret", computed=True),
        _bool("mfa_phone_enabled"),
        _bool("mfa_email_enabled"),
        _bool("mfa_radius_enabled"),
        _str("mfa_radius_username"),
        _str("mfa_radius_provider"),
        _bool("mfa_push_enabled"),
        _str("mfa_push_receiver"),
        _str("mfa_push_provider"),
        _str("mfa_remember_deadline"),
        _str("ip_whitelist"),
        _list("managed_accounts", sensitive=True),
        _list("mfa_accounts", sensitive=True),
        _list("mfa_items"),
        _list("face_ids"),
        _list("cart"),
        _list("groups"),
    ),
)

WEBHOOK = ResourceDescriptor(
    type_name="casdoor_webhook",
    kind="webhook",
    title="Webhook",
    fields=_key() + (
        _str("organization"),
        _str("url", required=True),
        _str("method", default="POST"),
        _str("content_type", default="application/json"),
        _list("headers"),
        _list("events"),
        _list("token_fields"),
        _list("object_fields"),
        _bool("is_user_extended"),
        _bool("single_org_only"),
        _bool("is_enabled", default=True),
    ),
)


RESOURCE_TYPES: dict[str, ResourceDescriptor] = {
    d.type_name: d
    for d in (
        ADAPTER,
        APPLICATION,
        CERT,
        ENFORCER,
        GROUP,
        IDENTITY_PROVIDER,
        LDAP,
        MODEL,
        ORGANIZATION_RESOURCE,
        PERMISSION,
        PLAN,
        PRICING,
        PRODUCT,
        ROLE,
        SYNCER,
        TOKEN,
        USER,
        WEBHOOK,
    )
}


def get_descriptor(type_name: str) -> ResourceDescriptor:
    """Look up a descriptor by resource type name.

    Raises:
        KeyError: If the type is not supported
    """
    try:
        return RESOURCE_TYPES[type_name]
    except KeyError:
        known = ", ".join(sorted(RESOURCE_TYPES))
        raise KeyError(f"Unknown resource type {type_name!r} (known: {known})") from None
