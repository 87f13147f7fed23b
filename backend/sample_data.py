"""Demo family used for local runs (CLANLINK_SEED_DEMO) and as a test fixture."""

from models import Person

DEMO_FAMILY_CODE = "CHEN001"
DEMO_FAMILY_NAME = "陈氏家族 (Chen Family)"


def chen_family_root(origin_family_code: str | None = None) -> Person:
    """Four generations of the Chen family."""
    return Person.model_validate({
        "id": "root",
        "name": "陈大爷",
        "gender": "male",
        "birthDate": "1940-02-15",
        "deathDate": "2020-01-15",
        "spouse": "李奶奶",
        "spouseBirthDate": "1942-05-20",
        "spouseDeathDate": "2022-03-10",
        "originFamilyCode": origin_family_code,
        "children": [
            {
                "id": "c1",
                "name": "陈建国",
                "gender": "male",
                "birthDate": "1965-05-20",
                "spouse": "王秀英",
                "spouseBirthDate": "1967-08-15",
                "originFamilyCode": origin_family_code,
                "children": [
                    {
                        "id": "g1",
                        "name": "陈小明",
                        "gender": "male",
                        "birthDate": "1992-08-15",
                        "spouse": "赵薇",
                        "spouseBirthDate": "1994-02-10",
                        "originFamilyCode": origin_family_code,
                        "children": [
                            {
                                "id": "gg1",
                                "name": "陈小小",
                                "gender": "female",
                                "birthDate": "2020-01-01",
                                "originFamilyCode": origin_family_code,
                            },
                        ],
                    },
                    {
                        "id": "g2",
                        "name": "陈小红",
                        "gender": "female",
                        "birthDate": "1995-11-03",
                        "originFamilyCode": origin_family_code,
                    },
                ],
            },
            {
                "id": "c2",
                "name": "陈美兰",
                "gender": "female",
                "birthDate": "1968-12-10",
                "spouse": "张伟",
                "spouseBirthDate": "1965-01-30",
                "originFamilyCode": origin_family_code,
                "children": [
                    {
                        "id": "g3",
                        "name": "张强",
                        "gender": "male",
                        "birthDate": "1998-03-22",
                        "originFamilyCode": origin_family_code,
                    },
                ],
            },
        ],
    })
