"""Sample estimate documents shared by the test modules"""

MITCHELL_BMS = """<?xml version="1.0" encoding="UTF-8"?>
<VehicleDamageEstimateAddRq xmlns="http://www.cieca.com/BMS">
  <RqUID>8f1c2d3e</RqUID>
  <RefClaimNum>CLM-42</RefClaimNum>
  <DocumentInfo>
    <DocumentID>EST-1001</DocumentID>
    <CreateDateTime>2024-03-01T10:00:00</CreateDateTime>
    <CurrencyInfo><CurCode>USD</CurCode></CurrencyInfo>
  </DocumentInfo>
  <ApplicationInfo>
    <ApplicationType>Estimating</ApplicationType>
    <ApplicationName>Mitchell</ApplicationName>
    <ApplicationVer>7.1</ApplicationVer>
  </ApplicationInfo>
  <AdminInfo>
    <InsuranceCompany>
      <Party><OrgInfo><CompanyName>Acme Mutual</CompanyName></OrgInfo></Party>
    </InsuranceCompany>
    <Owner>
      <Party>
        <PersonInfo>
          <PersonName><FirstName>Jane</FirstName><LastName>Doe</LastName></PersonName>
          <Communications>
            <CommQualifier>AL</CommQualifier>
            <Address>
              <Address1>12 Main St</Address1>
              <City>Springfield</City>
              <StateProvince>IL</StateProvince>
              <PostalCode>62701</PostalCode>
            </Address>
          </Communications>
        </PersonInfo>
        <ContactInfo>
          <Communications><CommQualifier>CP</CommQualifier><CommPhone>217-555-0101</CommPhone></Communications>
          <Communications><CommQualifier>EM</CommQualifier><CommEmail>jane@example.com</CommEmail></Communications>
        </ContactInfo>
      </Party>
    </Owner>
  </AdminInfo>
  <VehicleInfo>
    <VINInfo><VIN><VINNum>1HGCM82633A004352</VINNum></VIN></VINInfo>
    <VehicleDesc>
      <ModelYear>2019</ModelYear>
      <MakeDesc>Honda</MakeDesc>
      <ModelName>Accord</ModelName>
      <VehicleDescMemo>RO: 5521</VehicleDescMemo>
    </VehicleDesc>
    <DrivableInd>N</DrivableInd>
  </VehicleInfo>
  <DamageLineInfo>
    <LineNum>1</LineNum>
    <LineDesc>Front Bumper Cover</LineDesc>
    <PartInfo>
      <PartNum>04711-TVA-A00</PartNum>
      <PartPrice>412.50</PartPrice>
      <Quantity>1</Quantity>
      <PartType>PAN</PartType>
    </PartInfo>
    <LaborInfo><LaborType>LAB</LaborType><LaborHours>1.5</LaborHours></LaborInfo>
  </DamageLineInfo>
  <DamageLineInfo>
    <LineNum>2</LineNum>
    <LineDesc>Pre-repair scan</LineDesc>
    <LaborInfo>
      <LaborType>LAM</LaborType>
      <LaborOperation>OP0</LaborOperation>
      <LaborHours>0.5</LaborHours>
      <LaborAmt>60.00</LaborAmt>
    </LaborInfo>
  </DamageLineInfo>
  <RepairTotalsInfo>
    <LaborTotalsInfo><TotalType>LAB</TotalType><TotalAmt>180.00</TotalAmt></LaborTotalsInfo>
    <LaborTotalsInfo><TotalType>LAM</TotalType><TotalAmt>60.00</TotalAmt></LaborTotalsInfo>
    <PartsTotalsInfo><TotalType>PAN</TotalType><TotalAmt>412.50</TotalAmt></PartsTotalsInfo>
    <SummaryTotalsInfo>
      <TotalType>TOT</TotalType><TotalSubType>TT</TotalSubType><TotalAmt>700.25</TotalAmt>
    </SummaryTotalsInfo>
    <Adjustments><AdjustmentType>Tax</AdjustmentType><AdjustmentAmt>47.75</AdjustmentAmt></Adjustments>
  </RepairTotalsInfo>
</VehicleDamageEstimateAddRq>
"""

SIMPLE_BMS = """<Estimate>
  <EstimateInfo><EstimateNumber>E-77</EstimateNumber><ClaimNumber>C-9</ClaimNumber></EstimateInfo>
  <Customer>
    <Name>John Q Public</Name>
    <Phone>555-123-4567</Phone>
    <Email>john@example.com</Email>
    <Address><Street>1 Elm</Street><City>Austin</City><State>TX</State><Zip>78701</Zip></Address>
  </Customer>
  <Vehicle>
    <Year>2020</Year><Make>Toyota</Make><Model>Camry</Model>
    <VIN>4T1B11HK5LU000001</VIN><Mileage>42,000</Mileage>
  </Vehicle>
  <LineItems>
    <LineItem><Type>Part</Type><Description>Headlamp</Description><Quantity>2</Quantity><UnitPrice>$125.00</UnitPrice></LineItem>
    <LineItem><Type>Labor</Type><Description>R&amp;I bumper</Description><LaborHours>1.5</LaborHours><LaborRate>50</LaborRate></LineItem>
  </LineItems>
  <Totals><Tax>12.50</Tax></Totals>
  <Notes><Note>Customer waiting</Note></Notes>
  <Marketing><Promo>spring</Promo></Marketing>
</Estimate>
"""

GENERIC_BMS = """<BMS_ESTIMATE>
  <CUSTOMER_INFO>
    <FIRST_NAME>Ana</FIRST_NAME><LAST_NAME>Lopez</LAST_NAME>
    <PHONE>5125550000</PHONE><EMAIL>ana@example.com</EMAIL>
  </CUSTOMER_INFO>
  <VEHICLE_INFO><YEAR>2018</YEAR><MAKE>Ford</MAKE><MODEL>F-150</MODEL><VIN>1FTEW1E50JFA00001</VIN></VEHICLE_INFO>
  <CLAIM_INFO><CLAIM_NUMBER>GB-1</CLAIM_NUMBER><INSURANCE_COMPANY>Shield Ins</INSURANCE_COMPANY></CLAIM_INFO>
  <DAMAGE_ASSESSMENT>
    <DAMAGE_LINES>
      <LINE_ITEM>
        <LINE_NUMBER>1</LINE_NUMBER><PART_NAME>Fender</PART_NAME><PART_COST>300</PART_COST>
        <QUANTITY>1</QUANTITY><LABOR_HOURS>2</LABOR_HOURS><LABOR_RATE>55</LABOR_RATE>
      </LINE_ITEM>
    </DAMAGE_LINES>
    <PARTS_TOTAL>300</PARTS_TOTAL>
    <LABOR_TOTAL>110</LABOR_TOTAL>
    <TOTAL_ESTIMATE>440</TOTAL_ESTIMATE>
  </DAMAGE_ASSESSMENT>
</BMS_ESTIMATE>
"""

EMS_ESTIMATE = "\n".join([
    "HD|Best Body Shop|9 Shop Rd|Dallas|TX|75001|214-555-0000|shop@example.com",
    "VH|2017|Subaru|Outback|4S4BSANC5H3000001|ABC123|55000|Blue",
    "CO|Maria|Garcia|2145550111|5 Oak Ln|Dallas|TX|75002|maria@example.com",
    "IN|Lone Star Insurance|POL-88|Agent Smith|214-555-0199",
    "CL|CLM-300|2024-02-10|500|Adj Jones|214-555-0188",
    "PA|52119-0R903|Rear bumper cover|1|389.99|420.00|NEW|OEM",
    "LA|Replace|Rear bumper R&I|2.5|58|145.00|BODY",
    "LI|PART|Clip\\|retainer|4|2.50|10.00|3|CLIP-1",
    "LI|LABOR|Blend quarter panel|1.5|58|",
    "TX|SALES|8.25|44.50",
    "NO|Customer requests OEM parts",
    "ZZ|mystery",
])

# Full customer and vehicle, two parts ($100, $50), one labor line (2h x $60), no totals
COMPLETE_ESTIMATE = """<Estimate>
  <EstimateInfo><EstimateNumber>EST-A</EstimateNumber></EstimateInfo>
  <Customer>
    <FirstName>Jane</FirstName><LastName>Doe</LastName>
    <Email>jane@example.com</Email><Phone>(217) 555-0101</Phone>
  </Customer>
  <Vehicle>
    <Year>2019</Year><Make>Honda</Make><Model>Accord</Model><VIN>1HGCM82633A004352</VIN>
  </Vehicle>
  <LineItems>
    <LineItem><Type>Part</Type><Description>Mirror</Description><UnitPrice>100.00</UnitPrice></LineItem>
    <LineItem><Type>Part</Type><Description>Clip set</Description><UnitPrice>50.00</UnitPrice></LineItem>
    <LineItem><Type>Labor</Type><Description>Install mirror</Description><LaborHours>2</LaborHours><LaborRate>60</LaborRate></LineItem>
  </LineItems>
</Estimate>
"""

# Last name only, no make/model/year, no lines, no financials
SPARSE_ESTIMATE = """<Estimate>
  <Customer><LastName>Smith</LastName></Customer>
</Estimate>
"""


def estimate_for(email: str, first_name: str = "Jane", last_name: str = "Doe") -> str:
    """COMPLETE_ESTIMATE with a different customer."""
    return (
        COMPLETE_ESTIMATE
        .replace("jane@example.com", email)
        .replace("<FirstName>Jane</FirstName>", f"<FirstName>{first_name}</FirstName>")
        .replace("<LastName>Doe</LastName>", f"<LastName>{last_name}</LastName>")
    )
