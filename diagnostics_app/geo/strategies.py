"""
Geolocation lookup strategies.

Records follow the ip-api.com batch format (status, country, countryCode,
city, lat, lon, isp, org, as, mobile, proxy, hosting, query, ...) and are
passed through untouched.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List

import requests

from diagnostics_app.exceptions import GeoLookupError

logger = logging.getLogger(__name__)


class GeoLookupStrategy(ABC):
    """Abstract base class for geolocation backends"""

    @abstractmethod
    def lookup_batch(self, queries: List[Dict]) -> List[Dict]:
        """
        Geolocate a batch of IPs.

        Args:
            queries: List of {"query": ip} objects

        Returns:
            One record per query, in the same order

        Raises:
            GeoLookupError: When the provider cannot be reached or fails
        """
        pass


class IpApiGeoLookup(GeoLookupStrategy):
    """
    ip-api.com batch endpoint (no API key, max 100 queries per call).

    Blocking HTTP with requests; GeoService runs it in the threadpool.
    """

    def __init__(self, api_url: str, fields: str, timeout: int = 10):
        self.api_url = api_url
        self.fields = fields
        self.timeout = timeout

    def lookup_batch(self, queries: List[Dict]) -> List[Dict]:
        if not queries:
            return []

        try:
            response = requests.post(
                self.api_url,
                params={"fields": self.fields},
                json=queries,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error("ip-api batch request failed: %s", e)
            raise GeoLookupError(str(e)) from e
        except ValueError as e:
            logger.error("ip-api returned a non-JSON body: %s", e)
            raise GeoLookupError("invalid JSON from upstream") from e

        if not isinstance(data, list):
            logger.error("ip-api returned %s instead of a list", type(data).__name__)
            raise GeoLookupError("unexpected response shape from upstream")

        return data


def _record(query, country, country_code, region, region_name, city, lat, lon,
            timezone, isp, org, asn, asname, mobile=False, proxy=False, hosting=False,
            continent="Europe", continent_code="EU", currency="EUR"):
    return {
        "status": "success",
        "continent": continent,
        "continentCode": continent_code,
        "country": country,
        "countryCode": country_code,
        "region": region,
        "regionName": region_name,
        "city": city,
        "district": "",
        "zip": "",
        "lat": lat,
        "lon": lon,
        "timezone": timezone,
        "offset": 0,
        "currency": currency,
        "isp": isp,
        "org": org,
        "as": asn,
        "asname": asname,
        "reverse": "",
        "mobile": mobile,
        "proxy": proxy,
        "hosting": hosting,
        "query": query,
    }


# Fixed answers for development and tests.
STATIC_RECORDS = {
    r["query"]: r
    for r in [
        _record("8.8.8.8", "United States", "US", "VA", "Virginia", "Ashburn", 39.03, -77.5,
                "America/New_York", "Google LLC", "Google Public DNS", "AS15169 Google LLC", "GOOGLE",
                hosting=True, continent="North America", continent_code="NA", currency="USD"),
        _record("1.1.1.1", "Australia", "AU", "QLD", "Queensland", "South Brisbane", -27.4766, 153.0166,
                "Australia/Brisbane", "Cloudflare, Inc", "APNIC and Cloudflare DNS Resolver project",
                "AS13335 Cloudflare, Inc.", "CLOUDFLARENET", hosting=True,
                continent="Oceania", continent_code="OC", currency="AUD"),
        _record("81.2.69.142", "United Kingdom", "GB", "ENG", "England", "London", 51.5074, -0.1278,
                "Europe/London", "Andrews & Arnold Ltd", "Andrews & Arnold Ltd", "AS20712 Andrews & Arnold Ltd",
                "AANET", currency="GBP"),
        _record("24.48.0.1", "Canada", "CA", "QC", "Quebec", "Montreal", 45.5017, -73.5673,
                "America/Toronto", "Le Groupe Videotron Ltee", "Videotron Ltee", "AS5769 Videotron Ltee",
                "VIDEOTRON", continent="North America", continent_code="NA", currency="CAD"),
        _record("81.2.69.160", "United Kingdom", "GB", "ENG", "England", "London", 51.5074, -0.1278,
                "Europe/London", "Andrews & Arnold Ltd", "Andrews & Arnold Ltd", "AS20712 Andrews & Arnold Ltd",
                "AANET", currency="GBP"),
        _record("39.156.66.10", "China", "CN", "BJ", "Beijing", "Beijing", 39.9042, 116.4074,
                "Asia/Shanghai", "China Mobile", "China Mobile Communications Corporation",
                "AS9808 China Mobile Communications Group Co., Ltd.", "CMNET-GD", mobile=True,
                continent="Asia", continent_code="AS", currency="CNY"),
        _record("185.220.101.1", "Germany", "DE", "BE", "Land Berlin", "Berlin", 52.52, 13.405,
                "Europe/Berlin", "Zwiebelfreunde e.V.", "Stiftung Erneuerbare Freiheit",
                "AS60729 Stiftung Erneuerbare Freiheit", "TORSERVERS-NET", proxy=True, hosting=True),
        _record("95.223.57.198", "Germany", "DE", "HE", "Hesse", "Frankfurt am Main", 50.1109, 8.6821,
                "Europe/Berlin", "Vodafone GmbH", "Vodafone Kabel Deutschland", "AS3209 Vodafone GmbH",
                "VODANET"),
        _record("46.166.139.111", "Netherlands", "NL", "NH", "North Holland", "Amsterdam", 52.3676, 4.9041,
                "Europe/Amsterdam", "LeaseWeb Netherlands B.V.", "LeaseWeb Netherlands B.V.",
                "AS60781 LeaseWeb Netherlands B.V.", "LEASEWEB-NL-AMS-01", hosting=True),
    ]
}


class StaticGeoLookup(GeoLookupStrategy):
    """
    In-process lookup table.

    Unknown IPs get the same failure record ip-api returns for private
    and reserved ranges.
    """

    def __init__(self, records: Dict[str, Dict] = None):
        self.records = dict(STATIC_RECORDS if records is None else records)

    def lookup_batch(self, queries: List[Dict]) -> List[Dict]:
        results = []
        for item in queries:
            ip = item["query"]
            record = self.records.get(ip)
            if record is None:
                results.append({"status": "fail", "message": "reserved range", "query": ip})
            else:
                results.append(dict(record))
        return results
