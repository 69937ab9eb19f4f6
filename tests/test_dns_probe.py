"""Unit tests for the uncached DNS probe (resolver is faked)."""

import asyncio

import dns.asyncresolver
import dns.exception
import dns.resolver
import pytest

from latprobe.dns_probe import dns_error_code, measure_dns


class _Rdata:
    def __init__(self, address):
        self.address = address


def make_resolver(outcome, instances, delay=0.0):
    """Build a fake Resolver class that records every instance created."""

    class FakeResolver:
        def __init__(self):
            self.cache = "shared-cache"
            self.lifetime = None
            self.queries = []
            instances.append(self)

        async def resolve(self, qname, rdtype):
            self.queries.append((qname, rdtype))
            if delay:
                await asyncio.sleep(delay)
            if isinstance(outcome, Exception):
                raise outcome
            return [_Rdata(address) for address in outcome]

    return FakeResolver


class TestMeasureDNS:
    """Test measure_dns behavior with a fake resolver."""

    def test_success_returns_addresses(self, monkeypatch):
        """Test a successful lookup returns addresses and a timing."""
        instances = []
        monkeypatch.setattr(
            dns.asyncresolver,
            "Resolver",
            make_resolver(["192.0.2.1", "192.0.2.2"], instances, delay=0.01),
        )

        result = asyncio.run(measure_dns("example.com", timeout_s=3.0))

        assert result.ok
        assert result.addresses == ("192.0.2.1", "192.0.2.2")
        assert result.error_code is None
        assert result.elapsed_ms >= 5.0

    def test_queries_a_records_only(self, monkeypatch):
        """Test only IPv4 A records are requested."""
        instances = []
        monkeypatch.setattr(dns.asyncresolver, "Resolver", make_resolver(["192.0.2.1"], instances))

        asyncio.run(measure_dns("example.com"))

        assert instances[0].queries == [("example.com", dns.rdatatype.A)]

    def test_fresh_uncached_resolver_per_call(self, monkeypatch):
        """Test every call builds a new resolver with caching disabled."""
        instances = []
        monkeypatch.setattr(dns.asyncresolver, "Resolver", make_resolver(["192.0.2.1"], instances))

        async def three_lookups():
            for _ in range(3):
                await measure_dns("example.com", timeout_s=2.0)

        asyncio.run(three_lookups())

        assert len(instances) == 3
        assert len({id(instance) for instance in instances}) == 3
        assert all(instance.cache is None for instance in instances)
        assert all(instance.lifetime == 2.0 for instance in instances)

    def test_nxdomain_reported_not_raised(self, monkeypatch):
        """Test resolution failure yields an error result with elapsed time."""
        instances = []
        monkeypatch.setattr(
            dns.asyncresolver,
            "Resolver",
            make_resolver(dns.resolver.NXDOMAIN(), instances, delay=0.01),
        )

        result = asyncio.run(measure_dns("nope.invalid"))

        assert not result.ok
        assert result.addresses == ()
        assert result.error_code == "ENOTFOUND"
        assert result.elapsed_ms >= 5.0

    def test_timeout_reported(self, monkeypatch):
        """Test resolver timeouts map to ETIMEOUT."""
        instances = []
        monkeypatch.setattr(
            dns.asyncresolver, "Resolver", make_resolver(dns.exception.Timeout(), instances)
        )

        result = asyncio.run(measure_dns("slow.example"))

        assert result.error_code == "ETIMEOUT"
        assert result.elapsed_ms >= 0

    def test_unconfigured_resolver_reported(self, monkeypatch):
        """Test a resolver that cannot be built is reported, not raised."""

        def broken_resolver():
            raise dns.resolver.NoResolverConfiguration()

        monkeypatch.setattr(dns.asyncresolver, "Resolver", broken_resolver)

        result = asyncio.run(measure_dns("example.com"))

        assert not result.ok
        assert result.error_code == "EDNS"
        assert result.addresses == ()
        assert result.elapsed_ms > 0


class TestDNSErrorCode:
    """Test dnspython exception mapping."""

    @pytest.mark.parametrize(
        "exc, code",
        [
            (dns.resolver.NXDOMAIN(), "ENOTFOUND"),
            (dns.resolver.NoAnswer(), "ENODATA"),
            (dns.exception.Timeout(), "ETIMEOUT"),
            (dns.resolver.NoNameservers(), "ESERVFAIL"),
            (dns.exception.DNSException(), "EDNS"),
        ],
    )
    def test_mapping(self, exc, code):
        """Test each exception class maps to its code."""
        assert dns_error_code(exc) == code
