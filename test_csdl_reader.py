#!/usr/bin/env python3
"""Unit tests for the CSDL model reader."""

import unittest
from unittest.mock import MagicMock, patch

import requests

from breeze_metadata_lib import CsdlModelReader, MalformedModelError, build_metadata


V2_METADATA = b"""<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="1.0" xmlns:edmx="http://schemas.microsoft.com/ado/2007/06/edmx">
  <edmx:DataServices xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata" m:DataServiceVersion="3.0">
    <Schema Namespace="Shop.Models" Alias="Self"
            xmlns="http://schemas.microsoft.com/ado/2009/11/edm"
            xmlns:annotation="http://schemas.microsoft.com/ado/2009/02/edm/annotation">
      <!-- entity types -->
      <EntityType Name="Customer">
        <Key><PropertyRef Name="Id" /></Key>
        <Property Name="Id" Type="Edm.Int32" Nullable="false" annotation:StoreGeneratedPattern="Identity" />
        <Property Name="Name" Type="Edm.String" Nullable="false" MaxLength="50" />
        <Property Name="BillingAddress" Type="Self.Address" Nullable="false" />
        <Property Name="ShippingAddress" Type="Shop.Models.Address" Nullable="false" />
        <NavigationProperty Name="Orders" Relationship="Self.FK_Order_Customer" FromRole="Customer" ToRole="Order" />
      </EntityType>
      <EntityType Name="Order">
        <Key><PropertyRef Name="Id" /></Key>
        <Property Name="Id" Type="Edm.Int32" Nullable="false" annotation:StoreGeneratedPattern="Identity" />
        <Property Name="Total" Type="Edm.Decimal" Nullable="false" DefaultValue="0" />
        <Property Name="CustomerId" Type="Edm.Int32" Nullable="false" />
        <Property Name="Status" Type="Self.OrderStatus" Nullable="false" />
        <Property Name="HandlingTime" Type="Edm.Time" Nullable="false" />
        <Property Name="Notes" Type="Edm.String" MaxLength="Max" />
        <Property Name="RowVersion" Type="Edm.Binary" ConcurrencyMode="Fixed" />
        <NavigationProperty Name="Customer" Relationship="Self.FK_Order_Customer" FromRole="Order" ToRole="Customer" />
      </EntityType>
      <EntityType Name="SpecialOrder" BaseType="Self.Order">
        <Property Name="Priority" Type="Edm.Int16" />
      </EntityType>
      <EntityType Name="Audit">
        <Key><PropertyRef Name="Id" /></Key>
        <Property Name="Id" Type="Edm.Guid" Nullable="false" />
        <NavigationProperty Name="TargetEntity" Relationship="Self.Audit_Target" FromRole="Audit" ToRole="Target" />
      </EntityType>
      <EntityType Name="TargetEntity">
        <Key><PropertyRef Name="Id" /></Key>
        <Property Name="Id" Type="Edm.Int32" Nullable="false" />
      </EntityType>
      <ComplexType Name="Address">
        <Property Name="Street" Type="Edm.String" MaxLength="100" />
        <Property Name="Location" Type="Self.GeoPoint" Nullable="false" />
      </ComplexType>
      <ComplexType Name="GeoPoint">
        <Property Name="Lat" Type="Edm.Double" Nullable="false" />
        <Property Name="Lng" Type="Edm.Double" Nullable="false" />
      </ComplexType>
      <EnumType Name="OrderStatus">
        <Member Name="Open" Value="0" />
        <Member Name="Paid" Value="1" />
      </EnumType>
      <Association Name="FK_Order_Customer">
        <End Role="Customer" Type="Self.Customer" Multiplicity="1" />
        <End Role="Order" Type="Self.Order" Multiplicity="*" />
        <ReferentialConstraint>
          <Principal Role="Customer"><PropertyRef Name="Id" /></Principal>
          <Dependent Role="Order"><PropertyRef Name="CustomerId" /></Dependent>
        </ReferentialConstraint>
      </Association>
      <Association Name="Audit_Target">
        <End Role="Audit" Type="Self.Audit" Multiplicity="*" />
        <End Role="Target" Type="Self.TargetEntity" Multiplicity="0..1" />
      </Association>
      <EntityContainer Name="ShopContext">
        <EntitySet Name="Customers" EntityType="Self.Customer" />
        <EntitySet Name="Orders" EntityType="Shop.Models.Order" />
        <EntitySet Name="Audits" EntityType="Self.Audit" />
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>
"""

V4_METADATA = b"""<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="4.0" xmlns:edmx="http://docs.oasis-open.org/odata/ns/edmx">
  <edmx:DataServices>
    <Schema Namespace="Trip" xmlns="http://docs.oasis-open.org/odata/ns/edm">
      <EntityType Name="Person">
        <Key><PropertyRef Name="UserName" /></Key>
        <Property Name="UserName" Type="Edm.String" Nullable="false" />
        <Property Name="Gender" Type="Trip.Gender" />
        <NavigationProperty Name="Trips" Type="Collection(Trip.Trip)" Partner="Traveller" />
        <NavigationProperty Name="BestFriend" Type="Trip.Person" />
      </EntityType>
      <EntityType Name="Trip">
        <Key><PropertyRef Name="TripId" /></Key>
        <Property Name="TripId" Type="Edm.Int32" Nullable="false" />
        <Property Name="TravellerName" Type="Edm.String" />
        <Property Name="Duration" Type="Edm.Duration" Nullable="false" />
        <NavigationProperty Name="Traveller" Type="Trip.Person" Partner="Trips">
          <ReferentialConstraint Property="TravellerName" ReferencedProperty="UserName" />
        </NavigationProperty>
      </EntityType>
      <EnumType Name="Gender">
        <Member Name="Male" />
        <Member Name="Female" />
      </EnumType>
      <EntityContainer Name="Container">
        <EntitySet Name="People" EntityType="Trip.Person" />
        <EntitySet Name="Trips" EntityType="Trip.Trip" />
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>
"""


class TestCsdlV2(unittest.TestCase):

    def setUp(self):
        self.model = CsdlModelReader().parse(V2_METADATA)

    def test_entity_types_and_owned_occurrences(self):
        non_owned = [et.name for et in self.model.entity_types if not et.is_owned]
        self.assertEqual(non_owned, [
            "Shop.Models.Customer", "Shop.Models.Order", "Shop.Models.SpecialOrder",
            "Shop.Models.Audit", "Shop.Models.TargetEntity",
        ])
        owned = [et.name for et in self.model.entity_types if et.is_owned]
        self.assertEqual(owned, [
            "Shop.Models.Customer.BillingAddress#Address.Location#GeoPoint",
            "Shop.Models.Customer.BillingAddress#Address",
            "Shop.Models.Customer.ShippingAddress#Address.Location#GeoPoint",
            "Shop.Models.Customer.ShippingAddress#Address",
        ])

    def test_queryable_sets(self):
        self.assertEqual(self.model.context.name, "ShopContext")
        sets = {qs.name: qs.entity_type for qs in self.model.context.queryable_sets}
        self.assertEqual(sets["Orders"], "Shop.Models.Order")
        self.assertEqual(sets["Customers"], "Shop.Models.Customer")

    def test_property_attributes(self):
        order = self.model.find_entity_type("Shop.Models.Order")
        props = {p.name: p for p in order.properties}
        self.assertTrue(props["Id"].is_primary_key)
        self.assertTrue(props["Id"].is_value_generated_on_add)
        self.assertFalse(props["Total"].is_value_generated_on_add)
        self.assertEqual(props["Total"].default_value, "0")
        self.assertTrue(props["RowVersion"].is_concurrency_token)
        self.assertIsNone(props["Notes"].max_length)
        self.assertTrue(props["Notes"].is_nullable)
        self.assertEqual(props["Status"].host_type.enum_members, ["Open", "Paid"])

    def test_inherited_members_keep_declaring_type(self):
        special = self.model.find_entity_type("Shop.Models.SpecialOrder")
        self.assertEqual(special.base_type, "Shop.Models.Order")
        declaring = {p.name: p.declaring_type for p in special.properties}
        self.assertEqual(declaring["Id"], "Shop.Models.Order")
        self.assertEqual(declaring["Priority"], "Shop.Models.SpecialOrder")
        self.assertTrue(next(p for p in special.properties if p.name == "Id").is_primary_key)
        self.assertEqual([p.name for p in special.declared_properties()], ["Priority"])

    def test_association_sides(self):
        order_nav = self.model.find_entity_type("Shop.Models.Order").find_navigation("Customer")
        self.assertTrue(order_nav.is_dependent_side)
        self.assertEqual(order_nav.foreign_key_names, ["CustomerId"])
        self.assertEqual(order_nav.inverse_name, "Orders")
        self.assertFalse(order_nav.is_collection)

        customer_nav = self.model.find_entity_type("Shop.Models.Customer").find_navigation("Orders")
        self.assertFalse(customer_nav.is_dependent_side)
        self.assertTrue(customer_nav.is_collection)
        self.assertEqual(customer_nav.inverse_name, "Customer")

    def test_unconstrained_many_end_is_dependent(self):
        nav = self.model.find_entity_type("Shop.Models.Audit").find_navigation("TargetEntity")
        self.assertTrue(nav.is_dependent_side)
        self.assertEqual(nav.foreign_key_names, [])
        self.assertIsNone(nav.inverse_name)

    def test_builds_breeze_metadata(self):
        document = build_metadata(self.model)
        names = [mt.short_name for mt in document.structural_types]
        self.assertEqual(names, ["GeoPoint", "Address", "Customer", "Order", "SpecialOrder", "Audit", "TargetEntity"])

        address = document.find_type("Address")
        self.assertEqual([dp.name_on_server for dp in address.data_properties], ["Street", "Location"])
        self.assertEqual(address.data_properties[1].complex_type_name, "GeoPoint:#Shop.Models")

        order = document.find_type("Order")
        self.assertEqual(order.default_resource_name, "Orders")
        self.assertEqual(order.auto_generated_key_type.value, "Identity")
        by_name = {dp.name_on_server: dp for dp in order.data_properties}
        self.assertEqual(by_name["HandlingTime"].data_type, "TimeSpan")
        self.assertEqual(by_name["HandlingTime"].default_value, "PT0S")
        self.assertEqual(by_name["RowVersion"].data_type, "Binary")
        self.assertEqual(by_name["Status"].data_type, "Shop.Models.OrderStatus")

        customer_nav = document.find_type("Customer").navigation_properties[0]
        self.assertEqual(customer_nav.association_name, order.navigation_properties[0].association_name)
        self.assertEqual(customer_nav.association_name, "Order_Customer_Customer")
        self.assertEqual(document.find_type("SpecialOrder").base_type_name, "Order:#Shop.Models")
        self.assertEqual([e.short_name for e in document.enum_types], ["OrderStatus"])


class TestCsdlV4(unittest.TestCase):

    def setUp(self):
        self.model = CsdlModelReader().parse(V4_METADATA.decode('utf-8'))

    def test_partner_navigations(self):
        trip_nav = self.model.find_entity_type("Trip.Trip").find_navigation("Traveller")
        self.assertTrue(trip_nav.is_dependent_side)
        self.assertEqual(trip_nav.foreign_key_names, ["TravellerName"])

        person_nav = self.model.find_entity_type("Trip.Person").find_navigation("Trips")
        self.assertFalse(person_nav.is_dependent_side)
        self.assertTrue(person_nav.is_collection)
        self.assertEqual(person_nav.foreign_key_names, ["TravellerName"])
        self.assertEqual(person_nav.inverse_name, "Traveller")

    def test_builds_breeze_metadata(self):
        document = build_metadata(self.model)
        person = document.find_type("Person")
        trips, best_friend = person.navigation_properties
        self.assertEqual(trips.association_name, "Trip_Person_Traveller")
        self.assertEqual(trips.inv_foreign_key_names_on_server, ["TravellerName"])
        self.assertEqual(best_friend.association_name, "Inv_Person_Person_BestFriend")
        self.assertEqual(document.find_type("Trip").navigation_properties[0].association_name, "Trip_Person_Traveller")
        self.assertEqual(person.default_resource_name, "People")
        self.assertEqual(document.enum_types[0].values, ["Male", "Female"])

    def test_many_to_many_partner_on_base_type(self):
        xml = b"""<Edmx><Schema Namespace="S">
            <EntityType Name="Z">
              <Key><PropertyRef Name="Id" /></Key>
              <Property Name="Id" Type="Edm.Int32" Nullable="false" />
              <NavigationProperty Name="Ms" Type="Collection(S.M)" Partner="Bs" />
            </EntityType>
            <EntityType Name="B" BaseType="S.Z" />
            <EntityType Name="M">
              <Key><PropertyRef Name="Id" /></Key>
              <Property Name="Id" Type="Edm.Int32" Nullable="false" />
              <NavigationProperty Name="Bs" Type="Collection(S.B)" Partner="Ms" />
            </EntityType>
        </Schema></Edmx>"""
        model = CsdlModelReader().parse(xml)
        z_nav = model.find_entity_type("S.Z").find_navigation("Ms")
        m_nav = model.find_entity_type("S.M").find_navigation("Bs")
        self.assertNotEqual(z_nav.is_dependent_side, m_nav.is_dependent_side)
        self.assertTrue(m_nav.is_dependent_side)

        document = build_metadata(model)
        z_assoc = document.find_type("Z").navigation_properties[0].association_name
        m_assoc = document.find_type("M").navigation_properties[0].association_name
        self.assertEqual(z_assoc, m_assoc)
        self.assertEqual(m_assoc, "M_B_Bs")


class TestCsdlComplexTypes(unittest.TestCase):

    XML = b"""<Edmx><Schema Namespace="S" Alias="Alias">
        <EntityType Name="Home">
          <Key><PropertyRef Name="Id" /></Key>
          <Property Name="Id" Type="Edm.Int32" Nullable="false" />
          <Property Name="Mailing" Type="Alias.UsAddress" />
          <Property Name="History" Type="Collection(Alias.UsAddress)" />
        </EntityType>
        <ComplexType Name="BaseAddress">
          <Property Name="Street" Type="Edm.String" />
        </ComplexType>
        <ComplexType Name="UsAddress" BaseType="Alias.BaseAddress">
          <Property Name="Zip" Type="Edm.String" MaxLength="10" />
        </ComplexType>
    </Schema></Edmx>"""

    def setUp(self):
        self.model = CsdlModelReader().parse(self.XML)

    def test_inherited_complex_properties(self):
        occurrence = self.model.find_entity_type("S.Home.Mailing#UsAddress")
        self.assertEqual([p.name for p in occurrence.properties], ["Street", "Zip"])

        document = build_metadata(self.model)
        address = document.find_type("UsAddress")
        self.assertEqual([dp.name_on_server for dp in address.data_properties], ["Street", "Zip"])

    def test_collection_of_complex_type_is_scalar(self):
        owned = [et.name for et in self.model.entity_types if et.is_owned]
        self.assertEqual(owned, ["S.Home.Mailing#UsAddress"])
        home = self.model.find_entity_type("S.Home")
        history = next(p for p in home.properties if p.name == "History")
        self.assertEqual(history.host_type.name, "Collection(S.UsAddress)")

    def test_complex_base_type_cycle(self):
        xml = b"""<Edmx><Schema Namespace="N">
            <EntityType Name="A">
              <Key><PropertyRef Name="Id" /></Key>
              <Property Name="Id" Type="Edm.Int32" Nullable="false" />
              <Property Name="Value" Type="N.C1" />
            </EntityType>
            <ComplexType Name="C1" BaseType="N.C2" />
            <ComplexType Name="C2" BaseType="N.C1" />
        </Schema></Edmx>"""
        with self.assertRaises(MalformedModelError):
            CsdlModelReader().parse(xml)

    def test_unknown_complex_base_type(self):
        xml = b"""<Edmx><Schema Namespace="N">
            <EntityType Name="A">
              <Key><PropertyRef Name="Id" /></Key>
              <Property Name="Id" Type="Edm.Int32" Nullable="false" />
              <Property Name="Value" Type="N.C1" />
            </EntityType>
            <ComplexType Name="C1" BaseType="N.Missing" />
        </Schema></Edmx>"""
        with self.assertRaises(MalformedModelError):
            CsdlModelReader().parse(xml)


class TestCsdlErrors(unittest.TestCase):

    def test_invalid_xml(self):
        with self.assertRaises(MalformedModelError):
            CsdlModelReader().parse(b"<not-closed>")

    def test_no_schema(self):
        with self.assertRaises(MalformedModelError):
            CsdlModelReader().parse(b"<Edmx><DataServices /></Edmx>")

    def test_unknown_base_type(self):
        xml = b"""<Edmx><Schema Namespace="N">
            <EntityType Name="A" BaseType="N.Missing"><Property Name="X" Type="Edm.Int32" /></EntityType>
        </Schema></Edmx>"""
        with self.assertRaises(MalformedModelError):
            CsdlModelReader().parse(xml)

    def test_unknown_association(self):
        xml = b"""<Edmx><Schema Namespace="N">
            <EntityType Name="A"><NavigationProperty Name="B" Relationship="N.Nope" FromRole="A" ToRole="B" /></EntityType>
        </Schema></Edmx>"""
        with self.assertRaises(MalformedModelError):
            CsdlModelReader().parse(xml)

    def test_constraint_without_dependent_end(self):
        xml = b"""<Edmx><Schema Namespace="N">
            <EntityType Name="A">
              <Key><PropertyRef Name="Id" /></Key>
              <Property Name="Id" Type="Edm.Int32" Nullable="false" />
              <NavigationProperty Name="Bs" Relationship="N.A_B" FromRole="A" ToRole="B" />
            </EntityType>
            <EntityType Name="B">
              <Key><PropertyRef Name="Id" /></Key>
              <Property Name="Id" Type="Edm.Int32" Nullable="false" />
            </EntityType>
            <Association Name="A_B">
              <End Role="A" Type="N.A" Multiplicity="1" />
              <End Role="B" Type="N.B" Multiplicity="*" />
              <ReferentialConstraint>
                <Principal Role="A"><PropertyRef Name="Id" /></Principal>
              </ReferentialConstraint>
            </Association>
        </Schema></Edmx>"""
        with self.assertRaises(MalformedModelError):
            CsdlModelReader().parse(xml)

    def test_invalid_auth(self):
        with self.assertRaises(ValueError):
            CsdlModelReader("https://example.com/odata", auth="token")

    def test_fetch_without_url(self):
        with self.assertRaises(ValueError):
            CsdlModelReader().fetch()


class TestCsdlFetch(unittest.TestCase):

    @patch('requests.Session.get')
    def test_read_fetches_metadata(self, mock_get):
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.content = V4_METADATA
        mock_get.return_value = mock_response

        reader = CsdlModelReader("https://example.com/odata/", auth=("user", "pass"), verbose=True)
        model = reader.read()

        mock_get.assert_called_once_with("https://example.com/odata/$metadata")
        self.assertEqual(reader.session.auth, ("user", "pass"))
        self.assertEqual(len(model.entity_types), 2)

    @patch('requests.Session.get')
    def test_http_error_propagates(self, mock_get):
        mock_response = MagicMock()
        mock_response.raise_for_status.side_effect = requests.exceptions.HTTPError("401 Unauthorized")
        mock_get.return_value = mock_response

        with self.assertRaises(requests.exceptions.HTTPError):
            CsdlModelReader("https://example.com/odata").read()

    def test_cookie_auth(self):
        reader = CsdlModelReader("https://example.com/odata", auth={"session": "abc123"})
        self.assertEqual(reader.session.cookies.get("session"), "abc123")


if __name__ == '__main__':
    unittest.main()
