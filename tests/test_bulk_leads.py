import io

import openpyxl

CSV_HEADER = (
    "company_name,website_url,hiring_needs,no_of_positions,"
    "points_of_contact[0].name,points_of_contact[0].phone,points_of_contact[0].linkedin_url"
)


def upload(client, headers, filename, content, content_type="text/csv"):
    return client.post(
        "/api/leads/upload-csv",
        files={"file": (filename, content, content_type)},
        headers=headers,
    )


class TestBulkUpload:
    def test_csv_import_reports_per_row(self, client, bd_headers, create_lead):
        create_lead(bd_headers, company_name="Existing", website_url="https://existing.io")
        rows = [
            CSV_HEADER,
            "Alpha,https://alpha.io,Java;Python,3,Ann,111,https://www.linkedin.com/in/ann",
            "Alpha Again,http://www.alpha.io/,,,Bob,222,",
            "Beta,https://beta.io,,many,Cat,333,",
            "Gamma,https://gamma.io,,,Dan,444,https://linkedin.com/in/dan",
            ",https://delta.io,,,Eve,555,",
            "Existing Co,https://www.existing.io,,,Fay,666,",
        ]
        res = upload(client, bd_headers, "leads.csv", "\n".join(rows).encode())
        assert res.status_code == 200, res.text
        body = res.json()

        assert body["total_rows"] == 6
        assert body["successful_uploads"] == 1
        assert body["skipped_duplicates"] == 2
        assert body["failed_uploads"] == 3
        assert {(e["line"], e["field"]) for e in body["errors"]} == {
            (4, "no_of_positions"),
            (5, "linkedin_url"),
            (6, "company_name"),
        }

        lead = client.get(f"/api/leads/{body['uploaded_leads'][0]}", headers=bd_headers).json()
        assert lead["website_url"] == "https://alpha.io"
        assert lead["hiring_needs"] == ["Java", "Python"]
        assert lead["no_of_positions"] == 3
        assert lead["assigned_by"] == "BD001"
        assert lead["points_of_contact"][0]["name"] == "Ann"

    def test_json_contacts_column(self, client, admin_headers):
        content = (
            'company_name,website_url,points_of_contact\n'
            'Omega,https://omega.io,"[{""name"": ""Raj"", ""phone"": ""999""}]"\n'
        ).encode()
        body = upload(client, admin_headers, "leads.csv", content).json()
        assert body["successful_uploads"] == 1
        lead = client.get(f"/api/leads/{body['uploaded_leads'][0]}", headers=admin_headers).json()
        assert lead["points_of_contact"][0]["phone"] == "999"

    def test_xlsx_import(self, client, admin_headers):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["company_name", "website_url", "no_of_positions"])
        ws.append(["Sheet Co", "https://sheet.co", 4])
        buf = io.BytesIO()
        wb.save(buf)

        res = upload(
            client, admin_headers, "leads.xlsx", buf.getvalue(),
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
        body = res.json()
        assert body["successful_uploads"] == 1
        lead = client.get(f"/api/leads/{body['uploaded_leads'][0]}", headers=admin_headers).json()
        assert lead["no_of_positions"] == 4

    def test_rejects_other_file_types(self, client, admin_headers):
        res = upload(client, admin_headers, "leads.txt", b"hello", "text/plain")
        assert res.status_code == 400

    def test_import_is_logged(self, client, admin_headers):
        content = b"company_name,website_url\nLogged,https://logged.io\n"
        body = upload(client, admin_headers, "leads.csv", content).json()
        logged = client.get(
            "/api/activitylogs/activities",
            params={"lead_id": body["uploaded_leads"][0]},
            headers=admin_headers,
        ).json()
        assert [a["action"] for a in logged] == ["create"]
