def main():
    print("PascalCaseDir root")
