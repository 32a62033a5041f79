"""Known tenants selectable in the UI header."""

TENANTS: tuple[str, ...] = (
    "lbpl",
    "sellinamarsmaly",
    "pladisotsin",
    "cokepheb2b",
    "slmg",
    "iscoop",
    "kbuddy",
    "simasg",
    "rbinvth",
    "jnjaiph",
    "perfettisfai",
    "marsit",
    "itcvissfain",
    "sssl",
    "marssfath",
    "rbinvmy",
    "bbpl",
    "default",
    "paseo",
    "dbpl",
    "papa",
    "kgbpl",
    "cokemm",
    "enrich",
    "marsbel",
    "simamy",
    "apollotyre",
    "marssfain",
    "cashin",
    "yodabur",
    "unnati",
    "cokesa",
    "cokeslk",
    "digivyapar",
    "ckcoe",
    "kbl",
    "disha",
    "mbl",
    "niine",
)


def is_known_tenant(tenant: str) -> bool:
    return tenant.strip().lower() in TENANTS


def search_tenants(term: str) -> list[str]:
    needle = term.strip().lower()
    return [tenant for tenant in TENANTS if needle in tenant]
