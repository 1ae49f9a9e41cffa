"""
Heuristic threat scoring for geolocation records.

Everything here is a pure function over an ip-api style record and a few
hardcoded lists; no network lookups against real reputation services.
"""

import ipaddress
import re
from typing import Dict, List, NamedTuple

SUSPICIOUS_PREFIXES = ("95.223.", "185.220.", "46.166.")

# Broader net used when flagging analysed IPs for alerts
SUSPICIOUS_IP_PATTERNS = [re.compile(p) for p in (r"^95\.223\.", r"^185\.", r"^46\.", r"^109\.")]

TOR_EXIT_NODES = frozenset({"185.220.101.1", "46.166.139.111", "95.223.57.198"})

KNOWN_MALICIOUS_IPS = frozenset({"95.223.57.198", "185.220.101.1", "46.166.139.111"})
BLACKLIST_SOURCE_NAMES = ["Spamhaus", "AbuseIPDB"]

KNOWN_VPN_RANGES = [
    ipaddress.ip_network(cidr)
    for cidr in ("95.223.0.0/16", "185.220.0.0/16", "46.166.0.0/16", "109.70.100.0/24", "192.42.116.0/24")
]

CLOUD_ASN_NAMES = ["LeaseWeb", "OVH", "DigitalOcean", "Amazon", "Google Cloud", "Microsoft Azure"]
VPN_INDICATORS = ["VPN", "Proxy", "Anonymous", "Privacy"]
HIGH_RISK_COUNTRIES = frozenset({"CN", "RU", "KP", "IR"})

REPUTATION_SOURCES = [
    ("Spamhaus", "https://www.spamhaus.org/query/ip/"),
    ("AbuseIPDB", "https://www.abuseipdb.com/check/"),
    ("VirusTotal", "https://www.virustotal.com/gui/ip-address/"),
    ("Cisco Talos", "https://talosintelligence.com/reputation_center/lookup?search="),
]

HIGH_THRESHOLD = 5
MEDIUM_THRESHOLD = 2


class ThreatAssessment(NamedTuple):
    threat: str  # low / medium / high / unknown
    risk_factors: List[str]
    score: int


def _in_vpn_range(ip: str) -> bool:
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(address in network for network in KNOWN_VPN_RANGES)


def _contains_any(text: str, needles: List[str]) -> bool:
    lowered = text.lower()
    return any(n.lower() in lowered for n in needles)


def check_blacklist(ip: str) -> Dict:
    """Simulated blacklist status against the built-in list."""
    listed = ip in KNOWN_MALICIOUS_IPS
    return {
        "is_blacklisted": listed,
        "sources": list(BLACKLIST_SOURCE_NAMES) if listed else [],
        "confidence": 0.95 if listed else 0.1,
    }


def check_vpn_tor(ip: str) -> Dict:
    is_tor = ip in TOR_EXIT_NODES
    is_vpn = _in_vpn_range(ip)
    return {
        "is_vpn": is_vpn,
        "is_tor": is_tor,
        "is_proxy": is_vpn or is_tor,
        "confidence": 0.9 if (is_vpn or is_tor) else 0.1,
        "exit_node": is_tor,
    }


def determine_ip_type(record: Dict) -> str:
    if record.get("status") != "success":
        return "unknown"
    if record.get("mobile"):
        return "mobile"
    if record.get("hosting"):
        return "datacenter"
    if "corp" in (record.get("org") or "").lower():
        return "corporate"
    return "residential"


def is_suspicious_ip(ip: str) -> bool:
    return any(p.search(ip) for p in SUSPICIOUS_IP_PATTERNS)


def reputation_links(ip: str) -> List[Dict[str, str]]:
    return [{"name": name, "url": f"{base}{ip}"} for name, base in REPUTATION_SOURCES]


def threat_bucket(score: int) -> str:
    if score >= HIGH_THRESHOLD:
        return "high"
    if score >= MEDIUM_THRESHOLD:
        return "medium"
    return "low"


def assess_threat(record: Dict) -> ThreatAssessment:
    """
    Score a geolocation record.

    Each check contributes its weight once and appends one risk factor.
    Tor and VPN-range are exclusive: a Tor exit node is not also counted
    as a VPN server.
    """
    if record.get("status") != "success":
        return ThreatAssessment("unknown", [], 0)

    ip = record.get("query") or ""
    factors: List[str] = []
    score = 0

    def hit(factor: str, weight: int):
        nonlocal score
        factors.append(factor)
        score += weight

    if ip in KNOWN_MALICIOUS_IPS:
        hit("Known malicious IP", 5)
    if ip in TOR_EXIT_NODES:
        hit("Tor exit node", 4)
    elif _in_vpn_range(ip):
        hit("Known VPN range", 3)
    if ip.startswith(SUSPICIOUS_PREFIXES):
        hit("Suspicious IP range", 3)
    if record.get("hosting"):
        hit("Datacenter/hosting provider", 2)
    if record.get("proxy"):
        hit("Proxy server", 3)
    if record.get("mobile"):
        hit("Mobile network", 1)
    if _contains_any(f"{record.get('as') or ''} {record.get('asname') or ''}", CLOUD_ASN_NAMES):
        hit("Cloud provider ASN", 2)
    if _contains_any(f"{record.get('isp') or ''} {record.get('org') or ''}", VPN_INDICATORS):
        hit("VPN/proxy indicator in ISP name", 3)
    if record.get("countryCode") in HIGH_RISK_COUNTRIES:
        hit("High-risk country", 1)

    return ThreatAssessment(threat_bucket(score), factors, score)
